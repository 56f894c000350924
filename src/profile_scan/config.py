"""
Global configuration and numerical constants for profile-likelihood scans.

The scan drivers convert a minimized test statistic (approximately
-2 ln L at the constrained minimum) into a confidence-level value through
the chi-square survival function. The constants below fix the numerical
guards used along the way.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple


class ConfigurationError(ValueError):
    """A scan variable, parameter set or grid setting is missing or invalid."""


# =============================================================================
# Grid Resolution
# =============================================================================

DEFAULT_NPOINTS_1D = 100
"""Default number of bins of a 1D scan."""

DEFAULT_NPOINTS_2D = 50
"""Default number of bins per axis of a 2D scan."""


# =============================================================================
# Numerical Guards
# =============================================================================

SENTINEL_CHI2 = 1e4
"""Finite test-statistic value substituted for a non-finite fit result."""

ZERO_CHI2_THRESHOLD = 1e-10
"""1D statistics closer to zero than this are rounding noise and are set to 0."""

SANITY_FLOOR = -500.0
"""2D candidates below this statistic are never accepted as a global minimum."""

NEW_MINIMUM_TOLERANCE = 0.01
"""Relative improvement over the pre-scan minimum that flags a new global minimum."""

MINIMUM_MISMATCH_WARNING = 0.01
"""Absolute excess of the scan's best statistic over the pre-scan minimum that is reported."""

INNER_TURN_STEP = 1.41
"""Distance, in bins, between consecutive turns of the 2D scan spiral."""


# =============================================================================
# Degrees of Freedom
# =============================================================================

NDOF_1D = 1
"""Degrees of freedom of the chi-square used for 1D confidence levels."""

NDOF_2D = 1
"""Default degrees of freedom for 2D confidence levels ("1D sigma" contours)."""


# =============================================================================
# Scan Configuration
# =============================================================================

@dataclass
class ScanConfig:
    """Configuration shared by the 1D and 2D probability scans."""
    npoints_1d: int = DEFAULT_NPOINTS_1D
    npoints_2dx: int = DEFAULT_NPOINTS_2D
    npoints_2dy: int = DEFAULT_NPOINTS_2D
    scan_range: Optional[Tuple[float, float]] = None    # x range; None -> variable bounds
    scan_range_y: Optional[Tuple[float, float]] = None  # y range of 2D scans
    ndof_2d: int = NDOF_2D
    drag_mode: bool = True
    force: bool = False      # single pass, cold start at every point
    improve: bool = False    # single pass
    sentinel_chi2: float = SENTINEL_CHI2
    zero_threshold: float = ZERO_CHI2_THRESHOLD   # 0 disables rounding to zero
    sanity_floor: float = SANITY_FLOOR
    new_minimum_tolerance: float = NEW_MINIMUM_TOLERANCE
    pvalue_corrector: Optional[Callable[[float], float]] = None
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        if self.npoints_1d < 1:
            raise ConfigurationError(f"npoints_1d must be positive, got {self.npoints_1d}")
        if self.npoints_2dx < 1 or self.npoints_2dy < 1:
            raise ConfigurationError(
                f"2D grid must be non-empty, got {self.npoints_2dx}x{self.npoints_2dy}"
            )
        if self.ndof_2d not in (1, 2):
            raise ConfigurationError(f"ndof_2d must be 1 or 2, got {self.ndof_2d}")
        if self.zero_threshold < 0:
            raise ConfigurationError(f"zero_threshold must be >= 0, got {self.zero_threshold}")
        for name in ("scan_range", "scan_range_y"):
            rng = getattr(self, name)
            if rng is not None and not rng[0] < rng[1]:
                raise ConfigurationError(f"{name} must satisfy lo < hi, got {rng}")

    def single_pass(self, fast: bool) -> bool:
        """Return whether a 1D scan runs in fast (single pass) mode."""
        return fast or self.force or self.improve

    def use_drag_mode(self) -> bool:
        """Return whether minimizations are warm-started from the previous point."""
        return self.drag_mode and not self.force
