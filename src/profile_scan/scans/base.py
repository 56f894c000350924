"""
Pieces shared by the 1D and 2D probability scans.

A probability ("Prob") scan fixes the scan variable(s) at each grid point,
minimizes the test statistic over all other floating parameters, and
converts the difference to the global minimum into a 1-CL value with the
chi-square survival function.
"""

import math
import warnings
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from ..config import (
    ConfigurationError,
    MINIMUM_MISMATCH_WARNING,
    ScanConfig,
)
from ..fit.cache import FitResultCache, Handle
from ..fit.result import FitResult
from .global_min import GlobalMinimum
from .solutions import Solution


class ScanStatus(IntEnum):
    """Outcome of a scan."""
    OK = 0
    NEW_GLOBAL_MINIMUM = 1


def scan_status(best_in_scan: float, best_old: float, tolerance: float) -> ScanStatus:
    """
    Compare the best statistic of a scan with the reference from before it.

    Returns NEW_GLOBAL_MINIMUM if the scan improved on a finite reference
    by more than ``tolerance`` (relative), which hints at too strict
    parameter limits or too coarse a scan.

    Examples
    --------
    >>> scan_status(0.5, 1.0, 0.01)
    <ScanStatus.NEW_GLOBAL_MINIMUM: 1>
    >>> scan_status(0.995, 1.0, 0.01)
    <ScanStatus.OK: 0>
    """
    if not (math.isfinite(best_old) and math.isfinite(best_in_scan)):
        return ScanStatus.OK
    if best_old - best_in_scan > tolerance * abs(best_old):
        return ScanStatus.NEW_GLOBAL_MINIMUM
    return ScanStatus.OK


def bounds_or_range(model, name: str, scan_range: Optional[Tuple[float, float]]) -> Tuple[float, float]:
    """Scan range of a variable: the configured range, else the variable's bounds."""
    if scan_range is not None:
        return float(scan_range[0]), float(scan_range[1])
    lo, hi = model.get_bounds(name)
    if not (math.isfinite(lo) and math.isfinite(hi)):
        raise ConfigurationError(
            f"Scan variable '{name}' is unbounded; set its bounds or a scan range"
        )
    return lo, hi


class ProbScan:
    """
    Base class of the scan drivers.

    Parameters
    ----------
    model : Workspace-like
        Model exposing the parameter interface of :class:`~profile_scan.model.Workspace`.
    minimizer : Minimizer
        Provides ``minimize(model) -> FitResult``.
    scan_vars : sequence of str
        Names of the scan variables.
    config : ScanConfig, optional
        Scan options; defaults to ``ScanConfig()``.
    global_min : GlobalMinimum, optional
        Global-minimum state; pass a shared instance to let several scans
        use the same reference.
    """

    label = "ProbScan"
    round_tiny_statistics = False

    def __init__(
        self,
        model,
        minimizer,
        scan_vars: Sequence[str],
        config: Optional[ScanConfig] = None,
        global_min: Optional[GlobalMinimum] = None,
    ):
        self.model = model
        self.minimizer = minimizer
        self.scan_vars = tuple(scan_vars)
        self.config = config if config is not None else ScanConfig()
        self.global_min = global_min if global_min is not None else GlobalMinimum()
        self.cache = FitResultCache()
        self.solutions: List[Solution] = []
        self.n_scans_done = 0
        self.sanity_checks()

    def sanity_checks(self) -> None:
        """Raise ConfigurationError if a scan variable is missing from the model."""
        for name in self.scan_vars:
            if not self.model.has_parameter(name):
                raise ConfigurationError(f"{self.label}: scan variable not found: {name}")

    def _minimize(self) -> Tuple[FitResult, Handle]:
        """
        Minimize at the current parameter values and cache the result.

        A missing result or a non-finite statistic is replaced by the
        sentinel statistic, so that the point is still recorded. With
        ``round_tiny_statistics``, statistics within ``config.zero_threshold``
        of zero are set to exactly 0.
        """
        result = self.minimizer.minimize(self.model)
        if result is None:
            result = FitResult(
                min_nll=math.nan,
                constants={n: self.model.get_value(n) for n in self.scan_vars},
                status=-1,
            )
        if not math.isfinite(result.min_nll):
            result = result.with_statistic(self.config.sentinel_chi2)
        elif (
            self.round_tiny_statistics
            and result.min_nll != 0.0
            and abs(result.min_nll) < self.config.zero_threshold
        ):
            warnings.warn(
                f"{self.label}: chi2min smaller than {self.config.zero_threshold:g}, "
                f"setting to 0 (chi2min={result.min_nll:.3g})",
                RuntimeWarning,
                stacklevel=3,
            )
            result = result.with_statistic(0.0)
        return result, self.cache.add(result)

    def _report_minimum_mismatch(self, best_in_scan: float, best_old: float) -> None:
        if math.isfinite(best_old) and best_in_scan - best_old > MINIMUM_MISMATCH_WARNING:
            warnings.warn(
                f"{self.label}: scan didn't find a minimum similar to the one found before "
                f"(chi2 best in scan={best_in_scan:.6g}, before={best_old:.6g}). "
                "Too strict parameter limits? Too coarse scan steps?",
                RuntimeWarning,
                stacklevel=3,
            )

    def _status(self, best_in_scan: float, best_old: float) -> ScanStatus:
        status = scan_status(best_in_scan, best_old, self.config.new_minimum_tolerance)
        if status == ScanStatus.NEW_GLOBAL_MINIMUM:
            warnings.warn(
                f"{self.label}: scan found a new global minimum "
                f"(chi2 best in scan={best_in_scan:.6g}, before={best_old:.6g}). "
                "Too strict parameter limits or too coarse scan steps before?",
                RuntimeWarning,
                stacklevel=3,
            )
        return status
