"""
Fixed-resolution grids holding the scanned confidence-level curve.

Each cell stores the best (lowest) test statistic found so far, the
confidence-level value derived from it, and a handle to the fit result
that produced it. Bins are 0-based; bin k of an axis covers
[lo + k·w, lo + (k+1)·w) with w = (hi - lo)/n, the upper edge belonging
to the last bin.

Cells are only overwritten by a strictly better statistic. The
confidence-level array is otherwise rewritten only as a whole, either by
:meth:`Grid.recompute_from` after a new global minimum or by a coverage
correction pass.
"""

import math
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from .config import ConfigurationError
from .fit.cache import FitResultCache, Handle
from .fit.result import FitResult
from .stats import apply_pvalue_correction, survival_probability_array


Index = Union[int, Tuple[int, int]]


@dataclass(frozen=True)
class Axis:
    """
    Uniform binning of one scan variable.

    Attributes
    ----------
    lo, hi : float
        Range of the axis.
    n : int
        Number of bins.
    """
    lo: float
    hi: float
    n: int

    def __post_init__(self):
        if self.n < 1:
            raise ConfigurationError(f"Axis needs at least one bin, got {self.n}")
        if not (math.isfinite(self.lo) and math.isfinite(self.hi)) or not self.lo < self.hi:
            raise ConfigurationError(f"Invalid axis range [{self.lo}, {self.hi}]")

    @property
    def width(self) -> float:
        return (self.hi - self.lo) / self.n

    def center(self, k: int) -> float:
        """
        Center of bin k.

        Examples
        --------
        >>> Axis(0.0, 1.0, 4).center(0)
        0.125
        """
        return self.lo + (k + 0.5) * self.width

    def centers(self) -> np.ndarray:
        return self.lo + (np.arange(self.n) + 0.5) * self.width

    def edges(self) -> np.ndarray:
        return np.linspace(self.lo, self.hi, self.n + 1)

    def find_bin(self, value: float) -> int:
        """Return the bin containing ``value``, or -1 if it lies outside the axis."""
        if not self.lo <= value <= self.hi:
            return -1
        return min(int((value - self.lo) / self.width), self.n - 1)

    def clamped_bin(self, value: float) -> int:
        """Like :meth:`find_bin`, but values outside the axis map to the first/last bin."""
        if value < self.lo:
            return 0
        if value > self.hi:
            return self.n - 1
        return self.find_bin(value)


class Grid:
    """Common storage of 1D and 2D confidence-level grids."""

    def __init__(self, axes: List[Axis]):
        self.axes = axes
        shape = tuple(a.n for a in axes)
        self.shape = shape
        self.cl = np.zeros(shape, dtype=np.float64)
        self.chi2min = np.full(shape, np.inf, dtype=np.float64)
        self._handles: Dict[Index, Handle] = {}
        self._refs: Counter = Counter()

    @property
    def ndim(self) -> int:
        return len(self.axes)

    def indices(self) -> Iterator[Index]:
        """Iterate over all cell indices in C order."""
        for idx in np.ndindex(*self.shape):
            yield idx[0] if self.ndim == 1 else idx

    def set(self, index: Index, cl: float, stat: float, handle: Optional[Handle]) -> bool:
        """
        Store a scan result in a cell if it improves on the stored one.

        Parameters
        ----------
        index : int or (int, int)
            Cell index.
        cl : float
            Confidence-level value implied by ``stat``.
        stat : float
            Minimized test statistic.
        handle : Handle or None
            Cache handle of the fit result that produced ``stat``.

        Returns
        -------
        bool
            True if the cell was overwritten.
        """
        if not stat < self.chi2min[index]:
            return False
        old = self._handles.get(index)
        if old is not None:
            self._refs[old] -= 1
            if self._refs[old] <= 0:
                del self._refs[old]
        if handle is None:
            self._handles.pop(index, None)
        else:
            self._refs[handle] += 1
            self._handles[index] = handle
        self.chi2min[index] = stat
        self.cl[index] = cl
        return True

    def recompute_from(self, global_min: float, ndof: int = 1) -> None:
        """
        Re-derive every confidence-level value from the stored statistics.

        Pure re-derivation: no minimization is repeated.
        """
        self.cl = survival_probability_array(self.chi2min - global_min, ndof)

    def apply_correction(self, corrector: Optional[Callable[[float], float]]) -> None:
        """Apply a coverage-correction transform to every confidence-level value."""
        self.cl = apply_pvalue_correction(self.cl, corrector)

    def is_referenced(self, handle: Optional[Handle]) -> bool:
        """True if any cell holds ``handle``."""
        return handle is not None and self._refs.get(handle, 0) > 0

    def referenced_handles(self) -> List[Handle]:
        return list(self._refs)

    def handle_at(self, index: Index) -> Optional[Handle]:
        return self._handles.get(index)

    def result_at(self, index: Index, cache: FitResultCache) -> Optional[FitResult]:
        return cache.get(self._handles.get(index))

    def results(self, cache: FitResultCache) -> Dict[Index, FitResult]:
        """Fit result of every filled cell, keyed by cell index."""
        found = {}
        for index, handle in self._handles.items():
            result = cache.get(handle)
            if result is not None:
                found[index] = result
        return found

    def filled(self) -> np.ndarray:
        """Boolean mask of the cells that hold a result."""
        return np.isfinite(self.chi2min)


class Grid1D(Grid):
    """Confidence-level curve of a 1D scan."""

    def __init__(self, lo: float, hi: float, n: int):
        super().__init__([Axis(lo, hi, n)])

    @property
    def axis(self) -> Axis:
        return self.axes[0]

    @property
    def n(self) -> int:
        return self.axis.n

    def bin_center(self, i: int) -> float:
        return self.axis.center(i)

    def find_bin(self, value: float) -> int:
        return self.axis.find_bin(value)


class Grid2D(Grid):
    """Confidence-level surface of a 2D scan, indexed (i, j) = (x bin, y bin)."""

    def __init__(self, xlo: float, xhi: float, nx: int, ylo: float, yhi: float, ny: int):
        super().__init__([Axis(xlo, xhi, nx), Axis(ylo, yhi, ny)])

    @property
    def nx(self) -> int:
        return self.axes[0].n

    @property
    def ny(self) -> int:
        return self.axes[1].n

    def bin_center(self, i: int, j: int) -> Tuple[float, float]:
        return self.axes[0].center(i), self.axes[1].center(j)

    def find_bin(self, x: float, y: float) -> Tuple[int, int]:
        return self.axes[0].find_bin(x), self.axes[1].find_bin(y)
