"""
Extraction of solutions (local minima of the scanned test statistic).

After a scan, the stored minimum-statistic curve or surface is searched
for local minima; the fit results that produced them are the candidate
best-fit points. Solutions are returned sorted by test statistic, so
index 0 is the best one.
"""

import warnings
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..fit.cache import FitResultCache
from ..fit.result import FitResult
from ..grid import Grid1D, Grid2D, Index


@dataclass(frozen=True)
class Solution:
    """
    A local minimum of the scan.

    Attributes
    ----------
    result : FitResult
        Fit result at the minimum.
    index : int or (int, int)
        Grid bin of the minimum.
    scan_values : tuple of float
        Value(s) of the scan variable(s) in the fit result.
    """
    result: FitResult
    index: Index
    scan_values: Tuple[float, ...]

    @property
    def chi2(self) -> float:
        return self.result.min_nll


def sort_solutions(solutions: List[Solution]) -> List[Solution]:
    """Sort solutions in place by ascending test statistic and return them."""
    solutions.sort(key=lambda s: s.chi2)
    return solutions


def local_minimum_bins_1d(chi2: np.ndarray) -> List[int]:
    """
    Bins of a 1D statistic array that are local minima.

    A bin i qualifies if ``chi2[i-1] > chi2[i] < chi2[i+1]``, or if it
    starts a two-bin flat minimum ``chi2[i-1] > chi2[i] == chi2[i+1] < chi2[i+2]``.
    Only bins 1 ≤ i ≤ n-3 are inspected.

    Examples
    --------
    >>> local_minimum_bins_1d(np.array([3.0, 1.0, 2.0, 4.0]))
    [1]
    >>> local_minimum_bins_1d(np.array([3.0, 1.0, 1.0, 4.0]))
    [1]
    """
    found = []
    for i in range(1, len(chi2) - 2):
        one_bin = chi2[i - 1] > chi2[i] and chi2[i + 1] > chi2[i]
        two_bin = (
            chi2[i - 1] > chi2[i]
            and chi2[i] == chi2[i + 1]
            and chi2[i + 2] > chi2[i + 1]
        )
        if one_bin or two_bin:
            found.append(i)
    return found


def local_minimum_cells_2d(chi2: np.ndarray) -> List[Tuple[int, int]]:
    """Interior cells strictly lower than all eight neighbours."""
    nx, ny = chi2.shape
    found = []
    for i in range(1, nx - 1):
        for j in range(1, ny - 1):
            window = chi2[i - 1:i + 2, j - 1:j + 2]
            center = chi2[i, j]
            if np.sum(window <= center) == 1:
                found.append((i, j))
    return found


def find_solutions_1d(
    grid: Grid1D,
    cache: FitResultCache,
    scan_var: str,
    verbose: bool = False,
) -> List[Solution]:
    """
    Collect the fit results at the local minima of a 1D scan.

    For every local-minimum bin, each fit result held by the grid whose
    scan-variable value falls into that bin becomes a solution.
    """
    curve = [grid.result_at(k, cache) for k in range(grid.n)]
    solutions = []
    for i in local_minimum_bins_1d(grid.chi2min):
        for result in curve:
            if result is None:
                continue
            value = result.parameter_value(scan_var)
            if grid.find_bin(value) == i:
                if verbose:
                    print(f"  solution: {scan_var}={value:.6g} chi2={result.min_nll:.6g}")
                solutions.append(Solution(result, i, (value,)))

    if not solutions:
        warnings.warn(f"No solutions found in 1D scan of '{scan_var}'", RuntimeWarning)
    return sort_solutions(solutions)


def find_solutions_2d(
    grid: Grid2D,
    cache: FitResultCache,
    scan_vars: Tuple[str, str],
    verbose: bool = False,
) -> List[Solution]:
    """Collect the fit results at the local minima of a 2D scan."""
    solutions = []
    for i, j in local_minimum_cells_2d(grid.chi2min):
        result = grid.result_at((i, j), cache)
        if result is None:
            warnings.warn(
                f"No fit result for local minimum at bin ({i}, {j}); skipping",
                RuntimeWarning,
            )
            continue
        values = tuple(result.parameter_value(v) for v in scan_vars)
        if verbose:
            print(f"  solution: bin=({i}, {j}) chi2={result.min_nll:.6g}")
        solutions.append(Solution(result, (i, j), values))

    if not solutions:
        warnings.warn(
            f"No solutions found in 2D scan of '{scan_vars[0]}', '{scan_vars[1]}'",
            RuntimeWarning,
        )
    return sort_solutions(solutions)
