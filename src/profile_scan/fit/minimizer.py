"""
Minimization of the test statistic over the floating parameters.

Wraps scipy.optimize.minimize to solve, at one scan point,

    min_θ  t(ψ_fixed, θ)      subject to  lo_k ≤ θ_k ≤ hi_k

where ψ are the (constant) parameters of interest and θ the floating
nuisance parameters. After the fit the workspace is left at the fitted
values, so the next minimization can start from them (drag mode).

Uncertainties follow from the curvature of the test statistic: for
t = -2 ln L the covariance is 2·H⁻¹ with H the Hessian of t.
"""

import math
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np
from scipy.optimize import approx_fprime, minimize

from .result import FitResult


class Minimizer(Protocol):
    """Anything that can minimize a model's test statistic at fixed parameters of interest."""

    def minimize(self, model) -> FitResult:
        ...


def _scipy_bounds(bounds: List[Tuple[float, float]]) -> List[Tuple[Optional[float], Optional[float]]]:
    return [
        (lo if math.isfinite(lo) else None, hi if math.isfinite(hi) else None)
        for lo, hi in bounds
    ]


def numerical_hessian(fun, x: np.ndarray, eps: float = 1e-4) -> np.ndarray:
    """
    Finite-difference Hessian of ``fun`` at ``x``.

    Differentiates the ``approx_fprime`` gradient once more with
    ``approx_fprime`` and symmetrizes the result.

    Parameters
    ----------
    fun : callable
        Scalar function of a 1D array.
    x : np.ndarray
        Point of evaluation.
    eps : float
        Finite-difference step.

    Returns
    -------
    np.ndarray, shape (n, n)
    """
    x = np.asarray(x, dtype=np.float64)
    H = np.array([
        approx_fprime(x, lambda y, j=j: approx_fprime(y, fun, eps)[j], eps)
        for j in range(len(x))
    ])
    return 0.5 * (H + H.T)


def covariance_from_hessian(H: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert the Hessian of t = -2 ln L into uncertainties and correlations.

    Returns
    -------
    errors : np.ndarray
        Parameter uncertainties; NaN where the curvature is not usable.
    correlation : np.ndarray
        Correlation matrix (NaN rows/columns for unusable parameters).
    """
    n = H.shape[0]
    if not np.all(np.isfinite(H)):
        return np.full(n, np.nan), np.full((n, n), np.nan)
    try:
        cov = 2.0 * np.linalg.inv(H)
    except np.linalg.LinAlgError:
        return np.full(n, np.nan), np.full((n, n), np.nan)
    diag = np.diag(cov)
    errors = np.where(diag > 0, np.sqrt(np.abs(diag)), np.nan)
    with np.errstate(invalid="ignore", divide="ignore"):
        correlation = cov / np.outer(errors, errors)
    return errors, correlation


class ScipyMinimizer:
    """
    Minimizer backed by scipy.optimize.minimize.

    Parameters
    ----------
    method : str
        scipy minimization method; must support bounds (default "L-BFGS-B").
    tolerance : float
        Convergence tolerance passed to scipy.
    n_restarts : int
        Additional fits from random start points inside the bounds. The
        best of all fits is kept ("force" minimum finding).
    seed : int, optional
        Seed for the restart start points.
    compute_errors : bool
        If True, estimate uncertainties from a numerical Hessian.
    """

    def __init__(
        self,
        method: str = "L-BFGS-B",
        tolerance: float = 1e-8,
        n_restarts: int = 0,
        seed: Optional[int] = None,
        compute_errors: bool = True,
    ):
        self.method = method
        self.tolerance = tolerance
        self.n_restarts = n_restarts
        self.compute_errors = compute_errors
        self._rng = np.random.default_rng(seed)
        self.n_calls = 0

    def _restart_point(self, x0: np.ndarray, bounds) -> np.ndarray:
        x = np.array(x0, dtype=np.float64)
        for k, (lo, hi) in enumerate(bounds):
            if math.isfinite(lo) and math.isfinite(hi):
                x[k] = self._rng.uniform(lo, hi)
            else:
                x[k] = x0[k] + self._rng.normal(0.0, max(1.0, abs(x0[k])))
                x[k] = min(max(x[k], lo), hi)
        return x

    def minimize(self, model) -> FitResult:
        """
        Minimize the test statistic of ``model`` over its floating parameters.

        The model is updated in place with the best-fit values.
        """
        self.n_calls += 1
        floating = model.floating_names()
        constants = {n: model.get_value(n) for n in model.constant_names()}

        if not floating:
            value = model.evaluate()
            return FitResult(min_nll=value, constants=constants, n_evaluations=1)

        bounds = [model.get_bounds(n) for n in floating]
        x0 = np.array([model.get_value(n) for n in floating], dtype=np.float64)
        x0 = np.clip(x0, [b[0] for b in bounds], [b[1] for b in bounds])
        n_eval = 0

        def objective(x: np.ndarray) -> float:
            nonlocal n_eval
            n_eval += 1
            return model.evaluate(dict(zip(floating, x)))

        best = None
        starts = [x0] + [self._restart_point(x0, bounds) for _ in range(self.n_restarts)]
        for start in starts:
            res = minimize(
                objective, start, method=self.method,
                bounds=_scipy_bounds(bounds), tol=self.tolerance,
            )
            if (
                best is None
                or res.fun < best.fun
                or (np.isfinite(res.fun) and not np.isfinite(best.fun))
            ):
                best = res

        x_best = np.asarray(best.x, dtype=np.float64)
        fitted: Dict[str, float] = dict(zip(floating, map(float, x_best)))
        model.set_values(fitted)

        errors = np.full(len(floating), np.nan)
        correlation = None
        if self.compute_errors and math.isfinite(float(best.fun)):
            H = numerical_hessian(objective, x_best)
            errors, correlation = covariance_from_hessian(H)

        return FitResult(
            min_nll=float(best.fun),
            floating=tuple(floating),
            fitted=fitted,
            errors=dict(zip(floating, map(float, errors))),
            constants=constants,
            correlation=correlation,
            status=0 if best.success else int(best.status or 1),
            n_evaluations=n_eval,
        )
