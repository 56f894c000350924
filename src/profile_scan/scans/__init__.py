"""
Profile-likelihood scan drivers.

Implements:
- ProbScan1D: four-run 1D scan with drag-mode warm starts
- ProbScan2D: spiral 2D scan with inner-turn warm starts and cache eviction
- GlobalMinimum: shared reference minimum with retroactive recomputation
- Solution finding on the scanned curve/surface
"""

from .base import (
    ProbScan,
    ScanStatus,
    scan_status,
)

from .global_min import GlobalMinimum

from .scan1d import ProbScan1D

from .scan2d import ProbScan2D

from .solutions import (
    Solution,
    find_solutions_1d,
    find_solutions_2d,
    local_minimum_bins_1d,
    local_minimum_cells_2d,
)

from .spiral import (
    spiral_offsets,
    spiral_path,
    retract,
    inner_turn,
)

from .start import (
    WarmStart,
    ColdStart,
    select_start_strategy,
)

from .strategy import (
    run_scan_strategy_1d,
    run_scan_strategy_2d,
)

__all__ = [
    "ProbScan",
    "ScanStatus",
    "scan_status",
    "GlobalMinimum",
    "ProbScan1D",
    "ProbScan2D",
    "Solution",
    "find_solutions_1d",
    "find_solutions_2d",
    "local_minimum_bins_1d",
    "local_minimum_cells_2d",
    "spiral_offsets",
    "spiral_path",
    "retract",
    "inner_turn",
    "WarmStart",
    "ColdStart",
    "select_start_strategy",
    "run_scan_strategy_1d",
    "run_scan_strategy_2d",
]
