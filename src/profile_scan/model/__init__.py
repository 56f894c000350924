"""
Model interface used by the scan drivers.
"""

from .workspace import (
    Parameter,
    ParameterState,
    Workspace,
)

__all__ = [
    "Parameter",
    "ParameterState",
    "Workspace",
]
