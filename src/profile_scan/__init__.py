"""
profile_scan: profile-likelihood scans of statistical models

Computes frequentist confidence intervals by scanning the profile test
statistic of one or two parameters over a grid, converting each
constrained minimum into a 1-CL value with the chi-square survival
function.
"""

from . import config

__version__ = "0.1.0"
__all__ = ["config"]
