"""
Chi-square survival function used to turn a test-statistic difference
into a confidence-level value (1-CL, i.e. a p-value).
"""

import math
from typing import Callable, Optional

import numpy as np
from scipy.stats import chi2


def survival_probability(delta_chi2: float, ndof: int = 1) -> float:
    """
    Upper-tail probability of a chi-square distribution.

    Parameters
    ----------
    delta_chi2 : float
        Test-statistic difference to the global minimum. Negative values
        are clamped to 0, NaN is treated as an infinitely bad point.
    ndof : int
        Degrees of freedom.

    Returns
    -------
    float
        Probability in [0, 1].

    Examples
    --------
    >>> survival_probability(0.0)
    1.0
    >>> round(survival_probability(1.0), 4)
    0.3173
    """
    if math.isnan(delta_chi2):
        return 0.0
    return float(chi2.sf(max(delta_chi2, 0.0), ndof))


def survival_probability_array(delta_chi2: np.ndarray, ndof: int = 1) -> np.ndarray:
    """Vectorized :func:`survival_probability`."""
    delta = np.asarray(delta_chi2, dtype=np.float64)
    out = np.asarray(chi2.sf(np.clip(delta, 0.0, None), ndof), dtype=np.float64)
    return np.where(np.isnan(delta), 0.0, out)


def apply_pvalue_correction(
    values: np.ndarray,
    corrector: Optional[Callable[[float], float]],
) -> np.ndarray:
    """
    Apply a coverage-correction transform to every confidence-level value.

    The transform itself (e.g. looked up from coverage tables) is supplied
    by the caller; None leaves the values unchanged.
    """
    if corrector is None:
        return values
    flat = [corrector(float(v)) for v in np.ravel(values)]
    return np.asarray(flat, dtype=np.float64).reshape(np.shape(values))
