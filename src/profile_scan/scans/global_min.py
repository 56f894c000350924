"""
Global minimum of the test statistic across a scan session.

The confidence level of every grid cell is measured relative to the
global minimum. When a scan point beats it, all previously derived
confidence levels were too high; updating the minimum and re-deriving the
grid happen together in :meth:`GlobalMinimum.update`, so the grid is
consistent with the minimum whenever it can be observed.
"""

import math
import warnings

from ..grid import Grid
from ..stats import survival_probability


class GlobalMinimum:
    """
    Best test statistic seen so far; can only decrease.

    Pass the same instance to several drivers to let them share a
    reference minimum, or separate instances to keep scans independent.

    Parameters
    ----------
    value : float
        Starting reference, e.g. the statistic of a free fit. +inf if
        there is none.
    """

    def __init__(self, value: float = math.inf):
        self.value = float(value)
        self.n_updates = 0

    def __repr__(self):
        return f"GlobalMinimum({self.value!r})"

    def is_set(self) -> bool:
        return math.isfinite(self.value)

    def update(self, stat: float, grid: Grid, ndof: int = 1, label: str = "") -> bool:
        """
        Accept ``stat`` as new global minimum if it is lower, and re-derive
        every confidence level of ``grid`` from its stored statistics.

        Returns
        -------
        bool
            True if the minimum changed.
        """
        if not stat < self.value:
            return False
        old = self.value
        self.value = float(stat)
        self.n_updates += 1
        if math.isfinite(old) and grid.filled().any():
            warnings.warn(
                f"{label}new global minimum found: chi2min={stat:.6g} "
                f"(was {old:.6g}); recomputing previous 1-CL values",
                RuntimeWarning,
                stacklevel=2,
            )
        grid.recompute_from(self.value, ndof)
        return True

    def cl(self, stat: float, ndof: int = 1) -> float:
        """Confidence-level value (1-CL) of a statistic relative to this minimum."""
        return survival_probability(stat - self.value, ndof)
