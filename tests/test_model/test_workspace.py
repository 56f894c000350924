"""
Tests for the named-parameter workspace.
"""

import math

import pytest

from profile_scan.config import ConfigurationError
from profile_scan.fit.result import FitResult
from profile_scan.model.workspace import Parameter, Workspace


def make_workspace():
    ws = Workspace(lambda p: (p["mu"] - 1.0) ** 2 + p["b"] ** 2)
    ws.add_parameter("mu", 0.5, -2.0, 3.0)
    ws.add_parameter("b", 0.1)
    return ws


class TestParameter:
    """Tests for the Parameter record."""

    def test_bounded(self):
        """Only parameters with two finite bounds are bounded."""
        assert Parameter("a", 0.0, -1.0, 1.0).is_bounded()
        assert not Parameter("a", 0.0, -1.0).is_bounded()

    def test_in_range(self):
        """Range check is inclusive."""
        p = Parameter("a", 0.0, -1.0, 1.0)
        assert p.in_range(1.0)
        assert not p.in_range(1.01)


class TestRegistry:
    """Tests for adding and looking up parameters."""

    def test_names(self):
        """Parameters keep their insertion order."""
        ws = make_workspace()
        assert ws.names() == ["mu", "b"]
        assert ws.has_parameter("b")
        assert not ws.has_parameter("c")

    def test_duplicate_raises(self):
        """A parameter cannot be defined twice."""
        with pytest.raises(ConfigurationError):
            make_workspace().add_parameter("mu", 0.0)

    def test_missing_raises(self):
        """Unknown names raise ConfigurationError."""
        ws = make_workspace()
        with pytest.raises(ConfigurationError):
            ws.get_value("nope")
        with pytest.raises(ConfigurationError):
            ws.fix_parameter("nope")

    def test_invalid_bounds_raise(self):
        """lo > hi is rejected."""
        ws = make_workspace()
        with pytest.raises(ConfigurationError):
            ws.add_parameter("c", 0.0, 1.0, -1.0)
        with pytest.raises(ConfigurationError):
            ws.set_bounds("mu", 2.0, 1.0)

    def test_default_bounds_infinite(self):
        """Parameters without bounds are unbounded."""
        lo, hi = make_workspace().get_bounds("b")
        assert lo == -math.inf and hi == math.inf


class TestValuesAndState:
    """Tests for values, constness and state snapshots."""

    def test_fix_and_float(self):
        """Fixing moves a parameter from the floating to the constant list."""
        ws = make_workspace()
        ws.fix_parameter("mu")
        assert ws.floating_names() == ["b"]
        assert ws.constant_names() == ["mu"]
        ws.float_parameter("mu")
        assert ws.constant_names() == []

    def test_set_values_ignores_unknown(self):
        """Bulk assignment skips names the workspace does not know."""
        ws = make_workspace()
        ws.set_values({"mu": 2.0, "other": 5.0})
        assert ws.values() == {"mu": 2.0, "b": 0.1}

    def test_set_from_result(self):
        """Fit results load both constant and fitted values."""
        ws = make_workspace()
        ws.set_from_result(FitResult(0.0, ("b",), {"b": -0.4}, constants={"mu": 1.2}))
        assert ws.get_value("mu") == 1.2
        assert ws.get_value("b") == -0.4

    def test_save_restore(self):
        """restore_state brings back values, bounds and constness."""
        ws = make_workspace()
        state = ws.save_state()
        ws.set_value("mu", 2.5)
        ws.set_bounds("mu", 0.0, 10.0)
        ws.fix_parameter("b")
        ws.restore_state(state)
        assert ws.get_value("mu") == 0.5
        assert ws.get_bounds("mu") == (-2.0, 3.0)
        assert ws.floating_names() == ["mu", "b"]

    def test_state_is_snapshot(self):
        """A saved state does not follow later changes."""
        ws = make_workspace()
        state = ws.save_state()
        ws.set_value("mu", 2.5)
        assert state["mu"][0] == 0.5


class TestEvaluate:
    """Tests for evaluating the test statistic."""

    def test_current_values(self):
        """Without overrides the current values are used."""
        assert make_workspace().evaluate() == pytest.approx(0.25 + 0.01)

    def test_overrides_do_not_modify(self):
        """Overrides are used for one evaluation only."""
        ws = make_workspace()
        assert ws.evaluate({"b": 0.0}) == pytest.approx(0.25)
        assert ws.get_value("b") == 0.1
