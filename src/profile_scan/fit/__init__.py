"""
Fit results, their cache and the minimizer.

Implements:
- FitResult: immutable snapshot of one constrained minimization
- FitResultCache: generation-counted handle arena for fit results
- ScipyMinimizer: scipy.optimize based minimizer with optional restarts
"""

from .result import FitResult

from .cache import (
    FitResultCache,
    Handle,
)

from .minimizer import (
    Minimizer,
    ScipyMinimizer,
    numerical_hessian,
    covariance_from_hessian,
)

__all__ = [
    "FitResult",
    "FitResultCache",
    "Handle",
    "Minimizer",
    "ScipyMinimizer",
    "numerical_hessian",
    "covariance_from_hessian",
]
