"""
Choice of the parameter state each minimization starts from.

Drag mode (warm start) keeps whatever the previous minimization converged
to, or loads a nearby earlier result when one is supplied. Cold start
resets to the state saved at the beginning of the scan before every
point, which avoids carrying a bad fit across non-adjacent bins when the
likelihood surface is not smooth. The strategy is chosen once per scan.
"""

from typing import Optional

from ..fit.result import FitResult


class WarmStart:
    """Start from the previous point's fit, or from ``warm`` when given."""

    name = "warm"

    def prepare(self, model, start_state, warm: Optional[FitResult] = None) -> None:
        if warm is not None:
            model.set_from_result(warm)


class ColdStart:
    """Start every minimization from the saved scan start state."""

    name = "cold"

    def prepare(self, model, start_state, warm: Optional[FitResult] = None) -> None:
        model.restore_state(start_state)


def select_start_strategy(drag_mode: bool):
    """Return the start strategy for a scan."""
    return WarmStart() if drag_mode else ColdStart()
