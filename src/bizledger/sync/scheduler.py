"""Single-threaded scheduler for delayed sync work (debounce and retries).

Nothing runs on its own: the owner of the loop calls :meth:`run_due`, which
keeps every sync run on the caller's thread.
"""

import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass(order=True)
class ScheduledCall:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class QueueScheduler:
    """Queue of delayed callbacks ordered by due time."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._queue: list[ScheduledCall] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        """Schedule ``callback`` to run ``delay`` seconds from now."""
        call = ScheduledCall(self.clock() + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._queue, call)
        return call

    def run_due(self, now: Optional[float] = None) -> int:
        """Run every callback due at ``now``. Returns how many ran."""
        now = self.clock() if now is None else now
        ran = 0
        while self._queue and self._queue[0].due <= now:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            call.callback()
            ran += 1
        return ran

    def next_delay(self) -> Optional[float]:
        """Seconds until the next pending callback, or None if idle."""
        self._drop_cancelled()
        if not self._queue:
            return None
        return max(0.0, self._queue[0].due - self.clock())

    def __len__(self) -> int:
        self._drop_cancelled()
        return len(self._queue)

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
