"""
Square-spiral traversal of a 2D grid and its inner-turn geometry.

The 2D scan visits the grid along a square spiral centered on the start
bin, so that when a point is reached the points between it and the center
have already been minimized. Two pure functions express the relation
between a point and the earlier turns of the spiral:

- :func:`retract` moves a point towards the center along the straight
  line joining them, by ``turns`` times the turn spacing (≈ √2 bins), and
  rounds to the nearest bin.
- :func:`inner_turn` does the same on a finite grid: coordinates that
  leave the grid fall back to the center, and the point is reported as
  non-existent when it coincides with the center.

The first inner turn supplies the warm-start fit of a point; results on
the second inner turn can no longer be a warm start for any later point.
"""

import math
from typing import Iterator, Tuple

from ..config import INNER_TURN_STEP


Coord = Tuple[int, int]


def spiral_offsets(X: int, Y: int) -> Iterator[Coord]:
    """
    Offsets (x, y) of a square spiral around (0, 0).

    The spiral starts at (0, 0), first steps in +x, and winds
    counter-clockwise. It makes max(X, Y)² steps and yields only the
    offsets with -X/2 ≤ x ≤ X/2 and -Y/2 ≤ y ≤ Y/2.

    Examples
    --------
    >>> list(spiral_offsets(4, 4))[:5]
    [(0, 0), (1, 0), (1, 1), (0, 1), (-1, 1)]
    """
    x = y = dx = 0
    dy = -1
    t = max(X, Y)
    for _ in range(t * t):
        if -X / 2 <= x <= X / 2 and -Y / 2 <= y <= Y / 2:
            yield x, y
        if x == y or (x < 0 and x == -y) or (x > 0 and x == 1 - y):
            dx, dy = -dy, dx
        x += dx
        y += dy


def spiral_path(nx: int, ny: int, start: Coord) -> Iterator[Coord]:
    """
    Visit every bin of an nx × ny grid exactly once, spiralling out of ``start``.

    Parameters
    ----------
    nx, ny : int
        Grid dimensions.
    start : (int, int)
        0-based center bin; must lie inside the grid.

    Yields
    ------
    (int, int)
        0-based bin coordinates, ``start`` first.
    """
    i0, j0 = start
    if not (0 <= i0 < nx and 0 <= j0 < ny):
        raise ValueError(f"Spiral center {start} outside {nx}x{ny} grid")
    for x, y in spiral_offsets(2 * nx, 2 * ny):
        i, j = x + i0, y + j0
        if 0 <= i < nx and 0 <= j < ny:
            yield i, j


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def retract(center: Coord, point: Coord, turns: int, step: float = INNER_TURN_STEP) -> Coord:
    """
    Move ``point`` towards ``center`` by ``turns`` spiral turns.

    Parameters
    ----------
    center : (int, int)
        Center of the spiral.
    point : (int, int)
        Current point on the outermost turn.
    turns : int
        Number of turns to go inwards; 1 = next inner turn.
    step : float
        Distance between turns in bins.

    Returns
    -------
    (int, int)
        The retracted bin. May lie outside any grid, or beyond the center
        when the point is closer than ``turns·step``.

    Examples
    --------
    >>> retract((0, 0), (5, 0), 1)
    (4, 0)
    >>> retract((0, 0), (5, 5), 1)
    (4, 4)
    """
    ci, cj = center
    i, j = point
    r = math.hypot(i - ci, j - cj)
    if r == 0:
        return ci, cj
    shift = turns * step / r
    return _round_half_up(i - shift * (i - ci)), _round_half_up(j - shift * (j - cj))


def inner_turn(
    center: Coord,
    point: Coord,
    turns: int,
    shape: Tuple[int, int],
    step: float = INNER_TURN_STEP,
) -> Tuple[Coord, bool]:
    """
    Bin on an inner turn of the spiral, restricted to the grid.

    Each coordinate that falls outside ``[0, shape[k])`` is replaced by
    the center coordinate.

    Returns
    -------
    coord : (int, int)
        Resulting bin, always inside the grid if ``center`` is.
    exists : bool
        False if the result is the center itself, i.e. there is no
        distinct inner turn to refer to.
    """
    i, j = retract(center, point, turns, step)
    if not 0 <= i < shape[0]:
        i = center[0]
    if not 0 <= j < shape[1]:
        j = center[1]
    return (i, j), (i, j) != tuple(center)
