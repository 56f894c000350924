"""
Scan strategies: run a scan and re-run it once if it moved the global minimum.

A scan that ends with NEW_GLOBAL_MINIMUM has filled part of its grid
relative to a worse reference and, in drag mode, may have dragged fits
through a region away from the true minimum. A second pass starting from
the same grid can only lower the stored statistics. The 1D strategy runs
the second pass in the opposite direction.
"""

from .base import ScanStatus
from .scan1d import ProbScan1D
from .scan2d import ProbScan2D


def run_scan_strategy_1d(scanner: ProbScan1D, fast: bool = False) -> ScanStatus:
    """
    Scan, and if a new global minimum was found, scan again in reverse.

    Parameters
    ----------
    scanner : ProbScan1D
        Configured 1D scanner.
    fast : bool
        Passed to :meth:`ProbScan1D.scan`.

    Returns
    -------
    ScanStatus
        Status of the last scan performed.
    """
    status = scanner.scan(fast=fast)
    if status == ScanStatus.NEW_GLOBAL_MINIMUM:
        if scanner.config.verbose:
            print(f"{scanner.label}: new global minimum found, rescanning in reverse")
        status = scanner.scan(fast=fast, reverse=True)
    return status


def run_scan_strategy_2d(scanner: ProbScan2D) -> ScanStatus:
    """Scan, and scan once more if a new global minimum was found."""
    status = scanner.scan()
    if status == ScanStatus.NEW_GLOBAL_MINIMUM:
        if scanner.config.verbose:
            print(f"{scanner.label}: new global minimum found, rescanning")
        status = scanner.scan()
    return status
