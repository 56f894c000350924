"""
2D probability scan: profile-likelihood 1-CL surface of two parameters.

The grid is traversed along a square spiral centered on the bin holding
the variables' values when the scan starts. Every point is warm-started
from the fit on the next inner turn of the spiral, found by retracting
the point ~1.41 bins towards the center. The fit two turns further in can
no longer be anybody's warm start; unless it made it into the surface it
is evicted from the result cache right away, and a final sweep evicts
every result that is not part of the surface.

Usage:
    scanner = ProbScan2D(workspace, ScipyMinimizer(), "x", "y",
                         ScanConfig(npoints_2dx=50, npoints_2dy=50))
    status = scanner.scan()
    cl_surface = scanner.grid.cl
"""

import math
import time
from typing import Dict, Optional, Tuple

from ..config import ScanConfig
from ..fit.cache import Handle
from ..grid import Grid2D
from .base import ProbScan, ScanStatus, bounds_or_range
from .global_min import GlobalMinimum
from .solutions import find_solutions_2d
from .spiral import Coord, inner_turn, spiral_path
from .start import select_start_strategy


class ProbScan2D(ProbScan):
    """
    Profile-likelihood scan of two parameters.

    Parameters
    ----------
    model : Workspace-like
        The model; both scan variables must exist and be bounded unless
        a scan range is configured for them.
    minimizer : Minimizer
        Provides ``minimize(model) -> FitResult``.
    scan_var1, scan_var2 : str
        Names of the x and y scan variables.
    config : ScanConfig, optional
        Scan options; ``scan_range`` / ``scan_range_y`` override the
        variables' bounds.
    global_min : GlobalMinimum, optional
        Shared global-minimum state.
    """

    label = "ProbScan2D"

    def __init__(
        self,
        model,
        minimizer,
        scan_var1: str,
        scan_var2: str,
        config: Optional[ScanConfig] = None,
        global_min: Optional[GlobalMinimum] = None,
    ):
        super().__init__(model, minimizer, (scan_var1, scan_var2), config, global_min)
        self.scan_var1 = scan_var1
        self.scan_var2 = scan_var2
        xlo, xhi = bounds_or_range(model, scan_var1, self.config.scan_range)
        ylo, yhi = bounds_or_range(model, scan_var2, self.config.scan_range_y)
        self.grid = Grid2D(xlo, xhi, self.config.npoints_2dx,
                           ylo, yhi, self.config.npoints_2dy)
        self.timings: Dict[str, float] = {}

    def start_bin(self) -> Coord:
        """Bin of the variables' current values, clamped into the grid."""
        xaxis, yaxis = self.grid.axes
        return (
            xaxis.clamped_bin(self.model.get_value(self.scan_var1)),
            yaxis.clamped_bin(self.model.get_value(self.scan_var2)),
        )

    def scan(self) -> ScanStatus:
        """
        Perform the 2D scan and fill the 1-CL surface.

        Returns
        -------
        ScanStatus
            NEW_GLOBAL_MINIMUM if the scan improved on the global minimum
            known before it by more than the configured tolerance.
        """
        cfg = self.config
        model = self.model
        grid = self.grid
        cache = self.cache
        shape = grid.shape
        self.n_scans_done += 1
        strategy = select_start_strategy(cfg.use_drag_mode())

        t_scan = time.perf_counter()
        t_fit = 0.0
        t_mem = 0.0

        saved_state = model.save_state()
        center = self.start_bin()
        model.fix_parameter(self.scan_var1)
        model.fix_parameter(self.scan_var2)
        start_state = model.save_state()

        n_total = grid.nx * grid.ny
        if cfg.verbose:
            print(f"\n{self.label} configuration:")
            print(f"  scan variables : {self.scan_var1}, {self.scan_var2}")
            print(f"  grid           : {grid.nx} x {grid.ny}")
            print(f"  start bin      : {center}")
            print(f"  start mode     : {strategy.name}")
            print(f"  ndof           : {cfg.ndof_2d}")
        print_every = max(1, n_total // 10)

        best_old = self.global_min.value
        best_in_scan = math.inf
        # results of this scan by bin, for warm starts and eviction
        visited: Dict[Tuple[int, int], Handle] = {}
        n_step = 0

        for i, j in spiral_path(grid.nx, grid.ny, center):
            warm_bin, _ = inner_turn(center, (i, j), 1, shape)
            strategy.prepare(model, start_state, cache.get(visited.get(warm_bin)))

            t0 = time.perf_counter()
            old_bin, old_exists = inner_turn(center, (i, j), 2, shape)
            if old_exists:
                old = visited.pop(old_bin, None)
                if old is not None and not grid.is_referenced(old):
                    cache.evict(old)
            t_mem += time.perf_counter() - t0

            x, y = grid.bin_center(i, j)
            model.set_value(self.scan_var1, x)
            model.set_value(self.scan_var2, y)

            if cfg.verbose and n_step % print_every == 0:
                print(f"  [{n_step + 1}/{n_total}] {self.scan_var1} = {x:.6g}, "
                      f"{self.scan_var2} = {y:.6g}")

            t0 = time.perf_counter()
            result, handle = self._minimize()
            t_fit += time.perf_counter() - t0
            visited[(i, j)] = handle
            stat = result.min_nll

            if stat > cfg.sanity_floor:
                best_in_scan = min(best_in_scan, stat)
                self.global_min.update(stat, grid, cfg.ndof_2d, label=f"{self.label}: ")
            grid.set((i, j), self.global_min.cl(stat, cfg.ndof_2d), stat, handle)
            n_step += 1

        self._report_minimum_mismatch(best_in_scan, best_old)

        if cfg.pvalue_corrector is not None:
            # correct from the raw values; a rescan must not correct twice
            grid.recompute_from(self.global_min.value, cfg.ndof_2d)
            grid.apply_correction(cfg.pvalue_corrector)

        model.restore_state(saved_state)
        self.solutions = find_solutions_2d(
            grid, cache, (self.scan_var1, self.scan_var2), verbose=cfg.debug
        )

        t0 = time.perf_counter()
        n_swept = 0
        for handle in list(cache.handles()):
            if not grid.is_referenced(handle):
                cache.evict(handle)
                n_swept += 1
        t_mem += time.perf_counter() - t0

        self.timings = {
            "scan": time.perf_counter() - t_scan,
            "fit": t_fit,
            "memory": t_mem,
        }
        if cfg.verbose:
            print(f"{self.label}: scan done ({n_step} fits, {len(cache)} results kept, "
                  f"{n_swept} evicted in final sweep)")
        if cfg.debug:
            print(f"{self.label}: time scan = {self.timings['scan']:.3f} s, "
                  f"fit = {t_fit:.3f} s, memory management = {t_mem:.3f} s")

        return self._status(best_in_scan, best_old)
