"""
1D probability scan: profile-likelihood 1-CL curve of one parameter.

The scan variable is fixed at each bin center in turn and the test
statistic is minimized over the remaining floating parameters. The scan
range is covered in four monotone runs pivoting at the variable's value
when the scan starts:

    run 0 : start value -> upper limit   (up)
    run 1 : upper limit -> start value   (down)
    run 2 : start value -> lower limit   (down)
    run 3 : lower limit -> start value   (up)

``reverse`` swaps the two halves (order 2, 3, 0, 1); in fast mode runs 1
and 3 are skipped, so every bin is fitted once. Runs 0 and 2 start from
the saved start parameters. With drag mode the minimizations in between
continue from the previous bin's fit, so every bin is approached from
both sides in a full scan.

Usage:
    scanner = ProbScan1D(workspace, ScipyMinimizer(), "mu",
                         ScanConfig(npoints_1d=100, scan_range=(0, 2)))
    status = scanner.scan()
    best = scanner.solutions[0]
"""

import math
import warnings
from typing import Dict, Iterator, List, Optional

import numpy as np

from ..config import NDOF_1D, ScanConfig
from ..fit.result import FitResult
from ..grid import Grid1D
from .base import ProbScan, ScanStatus, bounds_or_range
from .global_min import GlobalMinimum
from .solutions import find_solutions_1d, local_minimum_bins_1d
from .start import select_start_strategy


RUN_ORDER = (0, 1, 2, 3)
RUN_ORDER_REVERSE = (2, 3, 0, 1)
RETURN_RUNS = (1, 3)


def run_bins(run: int, centers: np.ndarray, start_value: float) -> Iterator[int]:
    """
    Bins visited by one of the four monotone runs, in visiting order.

    Parameters
    ----------
    run : int
        Run number 0-3 (see module docstring).
    centers : np.ndarray
        Bin centers of the scan axis, ascending.
    start_value : float
        Value of the scan variable when the scan started.

    Examples
    --------
    >>> list(run_bins(0, np.array([0.5, 1.5, 2.5, 3.5]), 2.0))
    [2, 3]
    >>> list(run_bins(2, np.array([0.5, 1.5, 2.5, 3.5]), 2.0))
    [1, 0]
    """
    n = len(centers)
    if run in (0, 1):
        bins = [k for k in range(n) if centers[k] >= start_value]
    elif run in (2, 3):
        bins = [k for k in range(n) if centers[k] <= start_value]
    else:
        raise ValueError(f"Invalid run {run}")
    if run in (1, 2):
        bins.reverse()
    return iter(bins)


class ProbScan1D(ProbScan):
    """
    Profile-likelihood scan of a single parameter.

    Parameters
    ----------
    model : Workspace-like
        The model; ``scan_var`` must exist and be bounded unless
        ``config.scan_range`` is given.
    minimizer : Minimizer
        Provides ``minimize(model) -> FitResult``.
    scan_var : str
        Name of the scan variable.
    config : ScanConfig, optional
        Scan options.
    global_min : GlobalMinimum, optional
        Shared global-minimum state.
    """

    label = "ProbScan1D"
    round_tiny_statistics = True

    def __init__(
        self,
        model,
        minimizer,
        scan_var: str,
        config: Optional[ScanConfig] = None,
        global_min: Optional[GlobalMinimum] = None,
    ):
        super().__init__(model, minimizer, (scan_var,), config, global_min)
        self.scan_var = scan_var
        lo, hi = bounds_or_range(model, scan_var, self.config.scan_range)
        self.grid = Grid1D(lo, hi, self.config.npoints_1d)

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    def scan(self, fast: bool = False, reverse: bool = False) -> ScanStatus:
        """
        Perform the 1D scan and fill the 1-CL curve.

        Parameters
        ----------
        fast : bool
            Fit every bin only once (runs 0 and 2).
        reverse : bool
            Start with the downward half of the scan. With drag mode this
            can change which minimum a bin converges to.

        Returns
        -------
        ScanStatus
            NEW_GLOBAL_MINIMUM if the scan improved on the global minimum
            known before it by more than the configured tolerance.
        """
        cfg = self.config
        model = self.model
        var = self.scan_var
        grid = self.grid
        self.n_scans_done += 1
        fast = cfg.single_pass(fast)
        strategy = select_start_strategy(cfg.use_drag_mode())

        saved_state = model.save_state()
        lo, hi = model.get_bounds(var)
        if cfg.scan_range is None and (
            abs(lo - grid.axis.lo) > 1e-6 or abs(hi - grid.axis.hi) > 1e-6
        ):
            warnings.warn(
                f"{self.label}: range of '{var}' changed to [{lo}, {hi}] after the "
                f"scan was set up; scanning [{grid.axis.lo}, {grid.axis.hi}]",
                RuntimeWarning,
                stacklevel=2,
            )

        if cfg.verbose:
            print(f"\n{self.label} configuration:")
            print(f"  scan variable : {var}")
            print(f"  scan range    : {grid.axis.lo} ... {grid.axis.hi}")
            print(f"  scan steps    : {grid.n}")
            print(f"  fast mode     : {fast}")
            print(f"  start mode    : {strategy.name}")

        model.fix_parameter(var)
        start_state = model.save_state()
        start_value = model.get_value(var)
        centers = grid.axis.centers()

        best_old = self.global_min.value
        best_in_scan = math.inf
        n_total = grid.n * (1 if fast else 2)
        print_every = max(1, n_total // 10)
        n_step = 0

        for run in (RUN_ORDER_REVERSE if reverse else RUN_ORDER):
            if fast and run in RETURN_RUNS:
                continue
            if run not in RETURN_RUNS:
                model.restore_state(start_state)

            for i in run_bins(run, centers, start_value):
                strategy.prepare(model, start_state)
                value = float(centers[i])
                # don't scan outside the variable's range
                if value < lo or value > hi:
                    continue
                model.set_value(var, value)

                if cfg.verbose and n_step % print_every == 0:
                    print(f"  [{n_step + 1}/{n_total}] {var} = {value:.6g}")

                result, handle = self._minimize()
                stat = result.min_nll
                best_in_scan = min(best_in_scan, stat)
                self.global_min.update(stat, grid, NDOF_1D, label=f"{self.label}: ")
                grid.set(i, self.global_min.cl(stat, NDOF_1D), stat, handle)
                n_step += 1

        if cfg.verbose:
            print(f"{self.label}: scan done ({n_step} fits)")

        self._report_minimum_mismatch(best_in_scan, best_old)

        if cfg.pvalue_corrector is not None:
            # correct from the raw values; a rescan must not correct twice
            grid.recompute_from(self.global_min.value, NDOF_1D)
            grid.apply_correction(cfg.pvalue_corrector)

        model.restore_state(saved_state)
        self.solutions = find_solutions_1d(grid, self.cache, var, verbose=cfg.debug)
        return self._status(best_in_scan, best_old)

    # -------------------------------------------------------------------------
    # Results along the curve
    # -------------------------------------------------------------------------

    def curve_results(self) -> List[Optional[FitResult]]:
        """Fit result of every bin of the 1-CL curve (None where no fit was stored)."""
        return [self.grid.result_at(k, self.cache) for k in range(self.grid.n)]

    def chi2min_at(self, value: float) -> float:
        """Minimum test statistic stored for the bin containing ``value``."""
        k = self.grid.find_bin(value)
        if k < 0:
            raise ValueError(f"{value} outside scan range [{self.grid.axis.lo}, {self.grid.axis.hi}]")
        return float(self.grid.chi2min[k])

    def local_min_chi2(self) -> List[float]:
        """Test statistic at every local minimum of the curve."""
        return [float(self.grid.chi2min[i]) for i in local_minimum_bins_1d(self.grid.chi2min)]

    def parameter_evolution(self) -> Dict[str, np.ndarray]:
        """
        Best-fit parameter values along the 1-CL curve, in bin order.

        Returns
        -------
        dict
            Parameter name -> array of fitted values for the scan variable
            and every parameter that floated in the fits, plus ``"chi2"``
            with the test statistic.
        """
        results = [r for r in self.curve_results() if r is not None]
        names = [self.scan_var]
        for r in results:
            for name in r.floating:
                if name not in names:
                    names.append(name)
        evolution = {
            name: np.array([r.values().get(name, np.nan) for r in results], dtype=np.float64)
            for name in names
        }
        evolution["chi2"] = np.array([r.min_nll for r in results], dtype=np.float64)
        return evolution
