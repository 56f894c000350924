"""
Named-parameter workspace wrapping a test-statistic function.

The scan drivers only talk to the model through this small interface:
fix or float a parameter, set and get values and bounds, save and restore
the full parameter state, and evaluate the test statistic. Any object
providing the same methods can stand in for :class:`Workspace`.

Usage:
    ws = Workspace(lambda p: (p["mu"] - 1.0) ** 2 + p["b"] ** 2)
    ws.add_parameter("mu", 1.0, -5.0, 5.0)
    ws.add_parameter("b", 0.0, -3.0, 3.0)
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..config import ConfigurationError
from ..fit.result import FitResult


# Saved parameter state: name -> (value, lo, hi, constant)
ParameterState = Dict[str, Tuple[float, float, float, bool]]


@dataclass
class Parameter:
    """
    A single model parameter.

    Attributes
    ----------
    name : str
        Parameter name.
    value : float
        Current value.
    lo, hi : float
        Allowed range. Infinite bounds mean the parameter is unbounded.
    constant : bool
        True if the parameter is held fixed during minimization.
    """
    name: str
    value: float
    lo: float = -math.inf
    hi: float = math.inf
    constant: bool = False

    def is_bounded(self) -> bool:
        return math.isfinite(self.lo) and math.isfinite(self.hi)

    def in_range(self, value: float) -> bool:
        return self.lo <= value <= self.hi


class Workspace:
    """
    Collection of named parameters plus the test statistic they feed.

    Parameters
    ----------
    statistic : callable
        Maps a dict of all parameter values to the test statistic
        (-2 ln L up to a constant).
    """

    def __init__(self, statistic: Callable[[Mapping[str, float]], float]):
        self._statistic = statistic
        self._parameters: Dict[str, Parameter] = {}

    # -------------------------------------------------------------------------
    # Parameter registry
    # -------------------------------------------------------------------------

    def add_parameter(
        self,
        name: str,
        value: float,
        lo: float = -math.inf,
        hi: float = math.inf,
        constant: bool = False,
    ) -> Parameter:
        if name in self._parameters:
            raise ConfigurationError(f"Parameter '{name}' already defined")
        if lo > hi:
            raise ConfigurationError(f"Invalid range for '{name}': [{lo}, {hi}]")
        par = Parameter(name, float(value), float(lo), float(hi), constant)
        self._parameters[name] = par
        return par

    def has_parameter(self, name: str) -> bool:
        return name in self._parameters

    def parameter(self, name: str) -> Parameter:
        try:
            return self._parameters[name]
        except KeyError:
            raise ConfigurationError(f"Parameter '{name}' not found in workspace") from None

    def names(self) -> List[str]:
        return list(self._parameters)

    def floating_names(self) -> List[str]:
        return [n for n, p in self._parameters.items() if not p.constant]

    def constant_names(self) -> List[str]:
        return [n for n, p in self._parameters.items() if p.constant]

    # -------------------------------------------------------------------------
    # Values, bounds, constness
    # -------------------------------------------------------------------------

    def fix_parameter(self, name: str) -> None:
        self.parameter(name).constant = True

    def float_parameter(self, name: str) -> None:
        self.parameter(name).constant = False

    def set_value(self, name: str, value: float) -> None:
        self.parameter(name).value = float(value)

    def get_value(self, name: str) -> float:
        return self.parameter(name).value

    def get_bounds(self, name: str) -> Tuple[float, float]:
        par = self.parameter(name)
        return par.lo, par.hi

    def set_bounds(self, name: str, lo: float, hi: float) -> None:
        if lo > hi:
            raise ConfigurationError(f"Invalid range for '{name}': [{lo}, {hi}]")
        par = self.parameter(name)
        par.lo, par.hi = float(lo), float(hi)

    def values(self) -> Dict[str, float]:
        return {n: p.value for n, p in self._parameters.items()}

    def set_values(self, values: Mapping[str, float]) -> None:
        """Set every known parameter present in ``values``; unknown names are ignored."""
        for name, value in values.items():
            if name in self._parameters:
                self._parameters[name].value = float(value)

    def set_from_result(self, result: FitResult) -> None:
        """Load the fitted and constant values of a fit result as start values."""
        self.set_values(result.values())

    # -------------------------------------------------------------------------
    # State snapshots
    # -------------------------------------------------------------------------

    def save_state(self) -> ParameterState:
        return {
            n: (p.value, p.lo, p.hi, p.constant)
            for n, p in self._parameters.items()
        }

    def restore_state(self, state: ParameterState) -> None:
        for name, (value, lo, hi, constant) in state.items():
            par = self.parameter(name)
            par.value, par.lo, par.hi, par.constant = value, lo, hi, constant

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate(self, values: Optional[Mapping[str, float]] = None) -> float:
        """
        Evaluate the test statistic.

        Parameters
        ----------
        values : mapping, optional
            Overrides for some parameter values; the workspace itself is
            not modified.
        """
        point = self.values()
        if values is not None:
            point.update(values)
        return float(self._statistic(point))
