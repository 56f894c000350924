"""
Immutable snapshot of one constrained minimization.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class FitResult:
    """
    Result of minimizing the test statistic at one scan point.

    Attributes
    ----------
    min_nll : float
        Minimized test statistic (-2 ln L up to a constant).
    floating : tuple of str
        Names of the parameters that were floating, in fit order.
    fitted : mapping
        Floating parameter name -> fitted value.
    errors : mapping
        Floating parameter name -> uncertainty (NaN if unavailable).
    constants : mapping
        Constant parameter name -> value, including the scan variable(s).
    correlation : np.ndarray, optional
        Correlation matrix of the floating parameters, ordered like
        ``floating``.
    status : int
        Minimizer status code; 0 means converged.
    n_evaluations : int
        Number of test-statistic evaluations used.
    """
    min_nll: float
    floating: Tuple[str, ...] = ()
    fitted: Mapping[str, float] = field(default_factory=dict)
    errors: Mapping[str, float] = field(default_factory=dict)
    constants: Mapping[str, float] = field(default_factory=dict)
    correlation: Optional[np.ndarray] = None
    status: int = 0
    n_evaluations: int = 0

    def __post_init__(self):
        # read-only views over private copies
        for name in ("fitted", "errors", "constants"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "floating", tuple(self.floating))
        if self.correlation is not None:
            correlation = np.array(self.correlation, dtype=np.float64)
            correlation.flags.writeable = False
            object.__setattr__(self, "correlation", correlation)

    def statistic_value(self) -> float:
        return self.min_nll

    def is_finite(self) -> bool:
        return math.isfinite(self.min_nll)

    def parameter_value(self, name: str) -> float:
        """Fitted value of a floating parameter, or the value of a constant one."""
        if name in self.fitted:
            return self.fitted[name]
        if name in self.constants:
            return self.constants[name]
        raise KeyError(f"Parameter '{name}' not in fit result")

    def parameter_uncertainty(self, name: str) -> float:
        """Uncertainty of a floating parameter; constant parameters have none."""
        if name in self.errors:
            return self.errors[name]
        if name in self.constants:
            return 0.0
        raise KeyError(f"Parameter '{name}' not in fit result")

    def constant_value(self, name: str) -> float:
        return self.constants[name]

    def values(self) -> Dict[str, float]:
        """All parameter values, constant and floating."""
        out = dict(self.constants)
        out.update(self.fitted)
        return out

    def with_statistic(self, min_nll: float) -> "FitResult":
        """Copy of this result carrying a different test-statistic value."""
        return FitResult(
            min_nll=min_nll,
            floating=self.floating,
            fitted=dict(self.fitted),
            errors=dict(self.errors),
            constants=dict(self.constants),
            correlation=self.correlation,
            status=self.status,
            n_evaluations=self.n_evaluations,
        )
