"""
In-memory cache of all fit results produced during a scan.

Results live in a dense arena of slots. Every stored result is addressed
by a :class:`Handle` (slot index plus generation). Evicting a result frees
its slot and bumps the slot's generation, so every handle still pointing
at the old result becomes stale and resolves to None instead of aliasing
whatever is stored in the slot next.

The 2D scan evicts results as soon as they can no longer serve as warm
start for a later point and are not part of the confidence-level surface,
which keeps memory bounded by roughly one spiral turn.
"""

from typing import Iterator, List, NamedTuple, Optional

from .result import FitResult


class Handle(NamedTuple):
    """Stable reference to a cached fit result."""
    slot: int
    generation: int


class FitResultCache:
    """
    Arena of fit results addressed by generation-counted handles.

    Not safe for concurrent mutation.
    """

    def __init__(self):
        self._results: List[Optional[FitResult]] = []
        self._generations: List[int] = []
        self._free: List[int] = []
        self.n_added = 0
        self.n_evicted = 0

    def __len__(self) -> int:
        return len(self._results) - len(self._free)

    def __contains__(self, handle) -> bool:
        return self.is_live(handle)

    def add(self, result: FitResult) -> Handle:
        """Store a result and return its handle."""
        if self._free:
            slot = self._free.pop()
            self._results[slot] = result
        else:
            slot = len(self._results)
            self._results.append(result)
            self._generations.append(0)
        self.n_added += 1
        return Handle(slot, self._generations[slot])

    def is_live(self, handle: Optional[Handle]) -> bool:
        if handle is None:
            return False
        slot, generation = handle
        return (
            0 <= slot < len(self._results)
            and self._generations[slot] == generation
            and self._results[slot] is not None
        )

    def get(self, handle: Optional[Handle]) -> Optional[FitResult]:
        """Return the result for a handle, or None if it is stale or None."""
        if not self.is_live(handle):
            return None
        return self._results[handle.slot]

    def evict(self, handle: Optional[Handle]) -> bool:
        """
        Drop a result and invalidate every outstanding handle to it.

        Returns
        -------
        bool
            True if a live result was evicted.
        """
        if not self.is_live(handle):
            return False
        slot = handle.slot
        self._results[slot] = None
        self._generations[slot] += 1
        self._free.append(slot)
        self.n_evicted += 1
        return True

    def handles(self) -> Iterator[Handle]:
        """Iterate over the handles of all live results, oldest slot first."""
        for slot, result in enumerate(self._results):
            if result is not None:
                yield Handle(slot, self._generations[slot])

    def results(self) -> List[FitResult]:
        return [r for r in self._results if r is not None]

    def clear(self) -> None:
        for handle in list(self.handles()):
            self.evict(handle)
