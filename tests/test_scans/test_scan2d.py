"""
Tests for the 2D probability scan.

Tests the spiral traversal from the start bin, inner-turn warm starts,
cache eviction, the sanity floor and solution extraction.
"""

import math

import numpy as np
import pytest

from profile_scan.config import ConfigurationError, ScanConfig
from profile_scan.fit.minimizer import ScipyMinimizer
from profile_scan.fit.result import FitResult
from profile_scan.model.workspace import Workspace
from profile_scan.scans.base import ScanStatus
from profile_scan.scans.global_min import GlobalMinimum
from profile_scan.scans.scan2d import ProbScan2D
from profile_scan.stats import survival_probability_array


# ============================================================================
# Helpers
# ============================================================================

class RecordingMinimizer:
    """
    Evaluates the statistic at the current point without fitting.

    If ``scanner`` is attached, the cache size before each call is recorded.
    """

    def __init__(self):
        self.calls = []
        self.cache_sizes = []
        self.scanner = None

    def minimize(self, model):
        values = model.values()
        self.calls.append(values)
        if self.scanner is not None:
            self.cache_sizes.append(len(self.scanner.cache))
        return FitResult(min_nll=model.evaluate(), constants=values)


class CodeMinimizer:
    """Records the nuisance value at entry, then 'fits' it to a code of the bin."""

    def __init__(self):
        self.entry_b = {}

    def minimize(self, model):
        i = int(math.floor(model.get_value("x")))
        j = int(math.floor(model.get_value("y")))
        self.entry_b[(i, j)] = model.get_value("b")
        b = 10.0 * i + j
        model.set_value("b", b)
        return FitResult(
            min_nll=(i - 5) ** 2 + (j - 5) ** 2,
            floating=("b",),
            fitted={"b": b},
            constants={"x": model.get_value("x"), "y": model.get_value("y")},
        )


def bowl(p):
    return (p["x"] - 5.5) ** 2 + (p["y"] - 5.5) ** 2


def xy_workspace(statistic=bowl, x=5.5, y=5.5):
    ws = Workspace(statistic)
    ws.add_parameter("x", x, 0.0, 10.0)
    ws.add_parameter("y", y, 0.0, 10.0)
    return ws


def visited_bins(minimizer):
    return [(int(math.floor(c["x"])), int(math.floor(c["y"]))) for c in minimizer.calls]


# ============================================================================
# Scenarios
# ============================================================================

class TestBowl:
    """10x10 scan of a bowl with its minimum in bin (5, 5)."""

    @pytest.fixture(scope="class")
    def scanned(self):
        m = RecordingMinimizer()
        scanner = ProbScan2D(xy_workspace(), m, "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10))
        status = scanner.scan()
        return scanner, m, status

    def test_starts_at_minimum(self, scanned):
        """The spiral starts at the bin of the start values."""
        _, m, _ = scanned
        assert visited_bins(m)[0] == (5, 5)

    def test_every_bin_once(self, scanned):
        """Every bin is minimized exactly once."""
        _, m, _ = scanned
        bins = visited_bins(m)
        assert len(bins) == 100
        assert set(bins) == {(i, j) for i in range(10) for j in range(10)}

    def test_one_solution(self, scanned):
        """Exactly one solution, at (5, 5)."""
        scanner, _, _ = scanned
        assert len(scanner.solutions) == 1
        assert scanner.solutions[0].index == (5, 5)
        assert scanner.solutions[0].scan_values == (5.5, 5.5)

    def test_global_minimum(self, scanned):
        """The global minimum is 0 and the status OK."""
        scanner, _, status = scanned
        assert scanner.global_min.value == 0.0
        assert status == ScanStatus.OK

    def test_cl_consistent(self, scanned):
        """Every 1-CL value matches the final global minimum."""
        scanner, _, _ = scanned
        np.testing.assert_allclose(
            scanner.grid.cl,
            survival_probability_array(scanner.grid.chi2min - scanner.global_min.value),
        )

    def test_all_cells_keep_results(self, scanned):
        """No result referenced by the surface was evicted."""
        scanner, _, _ = scanned
        for index in scanner.grid.indices():
            assert scanner.grid.result_at(index, scanner.cache) is not None
        assert len(scanner.cache) == 100


class TestStartBin:
    """Tests for the spiral center."""

    def test_clamped(self):
        """Start values outside the grid are clamped to the border bins."""
        ws = xy_workspace(x=-4.0, y=25.0)
        scanner = ProbScan2D(ws, RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10))
        assert scanner.start_bin() == (0, 9)

    def test_corner_start_covers_grid(self):
        """A corner start still visits every bin once."""
        m = RecordingMinimizer()
        scanner = ProbScan2D(xy_workspace(x=0.2, y=9.9), m, "x", "y",
                             ScanConfig(npoints_2dx=6, npoints_2dy=4))
        scanner.scan()
        bins = visited_bins(m)
        assert len(bins) == 24
        assert len(set(bins)) == 24


class TestWarmStart:
    """Tests for inner-turn warm starts."""

    def make_scanner(self, **kwargs):
        ws = xy_workspace()
        ws.add_parameter("b", -1.0)
        m = CodeMinimizer()
        scanner = ProbScan2D(ws, m, "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10, **kwargs))
        return scanner, m, ws

    def test_center_starts_from_model(self):
        """The first point starts from the model's values."""
        scanner, m, _ = self.make_scanner()
        scanner.scan()
        assert m.entry_b[(5, 5)] == -1.0

    def test_inner_turn_result_used(self):
        """A point on the second ring starts from the fit one turn further in."""
        scanner, m, _ = self.make_scanner()
        scanner.scan()
        assert m.entry_b[(7, 5)] == 65.0
        assert m.entry_b[(9, 5)] == 85.0

    def test_cold_start(self):
        """Without drag mode every point starts from the saved state."""
        scanner, m, _ = self.make_scanner(drag_mode=False)
        scanner.scan()
        assert set(m.entry_b.values()) == {-1.0}

    def test_state_restored(self):
        """After the scan the model is back at its initial state."""
        scanner, _, ws = self.make_scanner()
        before = ws.save_state()
        scanner.scan()
        assert ws.save_state() == before


class TestEviction:
    """Tests for the bounded result cache."""

    def test_rescan_evicts_unused_results(self):
        """Results that did not improve the surface are evicted."""
        m = RecordingMinimizer()
        scanner = ProbScan2D(xy_workspace(), m, "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10))
        scanner.scan()
        m.scanner = scanner
        scanner.scan()
        assert len(scanner.cache) == 100
        assert scanner.cache.n_evicted == 100
        assert scanner.n_scans_done == 2
        # results two turns inside were dropped while scanning
        assert max(m.cache_sizes) < 199

    def test_surface_results_never_evicted(self):
        """Every surface cell resolves to a live result after a rescan."""
        m = RecordingMinimizer()
        scanner = ProbScan2D(xy_workspace(), m, "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10))
        scanner.scan()
        first = {idx: scanner.grid.handle_at(idx) for idx in scanner.grid.indices()}
        scanner.scan()
        for idx in scanner.grid.indices():
            assert scanner.grid.handle_at(idx) == first[idx]
            assert scanner.grid.result_at(idx, scanner.cache) is not None

    def test_improving_rescan(self):
        """Improved cells reference the new results; the old ones are evicted."""
        state = {"shift": 0.0}
        ws = xy_workspace(lambda p: bowl(p) - state["shift"])
        scanner = ProbScan2D(ws, RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=5, npoints_2dy=5, scan_range=(3.0, 8.0),
                                        scan_range_y=(3.0, 8.0)))
        scanner.scan()
        old = set(scanner.grid.referenced_handles())
        state["shift"] = 0.001
        scanner.scan()
        new = set(scanner.grid.referenced_handles())
        assert not old & new
        assert all(h not in scanner.cache for h in old)
        assert len(scanner.cache) == 25


class TestNumerics:
    """Tests for sentinel capping, the sanity floor and degrees of freedom."""

    def test_sentinel(self):
        """Non-finite statistics are capped and recorded."""
        def statistic(p):
            if p["x"] > 8.0:
                return math.nan
            return bowl(p)

        scanner = ProbScan2D(xy_workspace(statistic), RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10))
        scanner.scan()
        assert np.all(scanner.grid.chi2min[9, :] == 1e4)
        assert scanner.global_min.value == 0.0

    def test_sanity_floor(self):
        """Implausibly low statistics never become the global minimum."""
        def statistic(p):
            if math.floor(p["x"]) == 2 and math.floor(p["y"]) == 2:
                return -1000.0
            return bowl(p)

        scanner = ProbScan2D(xy_workspace(statistic), RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10))
        scanner.scan()
        assert scanner.global_min.value == 0.0
        assert scanner.grid.chi2min[2, 2] == -1000.0
        assert scanner.grid.cl[2, 2] == 1.0

    def test_two_dof(self):
        """ndof_2d=2 uses the two-dof survival function."""
        scanner = ProbScan2D(xy_workspace(), RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10, ndof_2d=2))
        scanner.scan()
        assert scanner.grid.cl[6, 5] == pytest.approx(math.exp(-0.5))
        assert scanner.grid.cl[7, 7] == pytest.approx(math.exp(-4.0))

    def test_pvalue_correction(self):
        """The coverage correction is applied to the final surface."""
        scanner = ProbScan2D(xy_workspace(), RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10,
                                        pvalue_corrector=lambda p: p / 2))
        scanner.scan()
        np.testing.assert_allclose(
            scanner.grid.cl, survival_probability_array(scanner.grid.chi2min) / 2
        )
        assert scanner.grid.cl[5, 5] == 0.5

    def test_pvalue_correction_on_rescan(self):
        """A second scan corrects the raw values again instead of the corrected ones."""
        scanner = ProbScan2D(xy_workspace(), RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=10, npoints_2dy=10,
                                        pvalue_corrector=lambda p: p / 2))
        scanner.scan()
        first = scanner.grid.cl.copy()
        scanner.scan()
        np.testing.assert_array_equal(scanner.grid.cl, first)

    def test_tiny_statistics_kept(self):
        """2D statistics are stored as returned, however close to zero."""
        scanner = ProbScan2D(xy_workspace(lambda p: bowl(p) + 1e-12), RecordingMinimizer(),
                             "x", "y", ScanConfig(npoints_2dx=10, npoints_2dy=10))
        scanner.scan()
        assert scanner.grid.chi2min[5, 5] == 1e-12

    def test_new_global_minimum(self):
        """Improving on a prior reference by more than 1% is reported."""
        scanner = ProbScan2D(xy_workspace(lambda p: bowl(p) + 1.0), RecordingMinimizer(),
                             "x", "y", ScanConfig(npoints_2dx=5, npoints_2dy=5,
                                                  scan_range=(3.0, 8.0),
                                                  scan_range_y=(3.0, 8.0)),
                             global_min=GlobalMinimum(2.0))
        with pytest.warns(RuntimeWarning, match="new global minimum"):
            assert scanner.scan() == ScanStatus.NEW_GLOBAL_MINIMUM

    def test_with_nuisance(self):
        """The scan profiles a nuisance parameter with the scipy minimizer."""
        ws = Workspace(lambda p: bowl(p) + (p["b"] - p["x"] * p["y"]) ** 2)
        ws.add_parameter("x", 5.5, 0.0, 10.0)
        ws.add_parameter("y", 5.5, 0.0, 10.0)
        ws.add_parameter("b", 0.0, -200.0, 200.0)
        scanner = ProbScan2D(ws, ScipyMinimizer(compute_errors=False), "x", "y",
                             ScanConfig(npoints_2dx=6, npoints_2dy=6, scan_range=(3.0, 9.0),
                                        scan_range_y=(3.0, 9.0)))
        scanner.scan()
        expected = np.array([[(i + 3.5 - 5.5) ** 2 + (j + 3.5 - 5.5) ** 2
                              for j in range(6)] for i in range(6)])
        np.testing.assert_allclose(scanner.grid.chi2min, expected, atol=1e-6)
        assert scanner.solutions[0].index == (2, 2)
        assert scanner.solutions[0].result.parameter_value("b") == pytest.approx(
            5.5 * 5.5, abs=1e-3
        )

    def test_debug_timing(self, capsys):
        """Debug mode records and prints per-phase timings."""
        scanner = ProbScan2D(xy_workspace(), RecordingMinimizer(), "x", "y",
                             ScanConfig(npoints_2dx=4, npoints_2dy=4, debug=True,
                                        scan_range=(3.0, 7.0), scan_range_y=(3.0, 7.0)))
        scanner.scan()
        assert set(scanner.timings) == {"scan", "fit", "memory"}
        assert scanner.timings["scan"] >= scanner.timings["fit"]
        assert "memory management" in capsys.readouterr().out


class TestConfiguration:
    """Tests for precondition checks."""

    def test_missing_variable(self):
        """Both scan variables must exist."""
        with pytest.raises(ConfigurationError):
            ProbScan2D(xy_workspace(), RecordingMinimizer(), "x", "z")

    def test_unbounded_variable(self):
        """Unbounded variables need an explicit range."""
        ws = Workspace(bowl)
        ws.add_parameter("x", 0.0, 0.0, 10.0)
        ws.add_parameter("y", 0.0)
        with pytest.raises(ConfigurationError):
            ProbScan2D(ws, RecordingMinimizer(), "x", "y")
        scanner = ProbScan2D(ws, RecordingMinimizer(), "x", "y",
                             ScanConfig(scan_range_y=(-1.0, 1.0)))
        assert scanner.grid.axes[1].hi == 1.0
