"""De-duplicating, rate-limited work queue.

Items are coalesced on their ``key``: adding an item whose key is already
queued replaces the queued payload with the newer one, and a key that is
being processed is only handed out again after :meth:`RateLimitingQueue.done`.
That way at most one item per key is in flight at any time.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from .events import ItemKey, WorkItem

LOG = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = 0.005
DEFAULT_MAX_DELAY = 1000.0


class RateLimitingQueue:
    def __init__(
        self,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: Deque[ItemKey] = deque()
        self._pending: Dict[ItemKey, WorkItem] = {}
        self._dirty: Set[ItemKey] = set()
        self._processing: Set[ItemKey] = set()
        self._waiting: List[Tuple[float, int, WorkItem]] = []
        self._failures: Dict[ItemKey, int] = {}
        self._sequence = itertools.count()
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, item: WorkItem) -> None:
        with self._cond:
            self._add_locked(item)

    def _add_locked(self, item: WorkItem, supersede: bool = True) -> None:
        if self._shutting_down:
            return
        key = item.key
        if key in self._dirty:
            if supersede:
                self._pending[key] = item
            return
        self._pending[key] = item
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add_after(self, item: WorkItem, delay: float) -> None:
        if delay <= 0:
            self.add(item)
            return
        with self._cond:
            if self._shutting_down:
                return
            ready_at = self._clock() + delay
            heapq.heappush(self._waiting, (ready_at, next(self._sequence), item))
            self._cond.notify()

    def add_rate_limited(self, item: WorkItem) -> None:
        """Re-add ``item`` after an exponentially growing per-key delay."""

        with self._cond:
            failures = self._failures.get(item.key, 0)
            self._failures[item.key] = failures + 1
        delay = min(self._base_delay * (2 ** failures), self._max_delay)
        LOG.debug("Requeuing %s in %.3fs (attempt %d)", item.key, delay, failures + 1)
        self.add_after(item, delay)

    def forget(self, item: WorkItem) -> None:
        with self._cond:
            self._failures.pop(item.key, None)

    def num_requeues(self, item: WorkItem) -> int:
        with self._cond:
            return self._failures.get(item.key, 0)

    def get(self, timeout: Optional[float] = None) -> Optional[WorkItem]:
        """Block until an item is ready.

        Returns ``None`` once the queue is shut down, or when ``timeout``
        elapses without an item becoming ready.
        """

        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_waiting_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return self._pending.pop(key)
                if self._shutting_down:
                    return None

                wait_for = None
                if self._waiting:
                    wait_for = max(self._waiting[0][0] - self._clock(), 0.0)
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                self._cond.wait(wait_for)

    def _promote_waiting_locked(self) -> None:
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, item = heapq.heappop(self._waiting)
            # A newer event for the same key supersedes the retried one.
            self._add_locked(item, supersede=False)

    def done(self, item: WorkItem) -> None:
        with self._cond:
            key = item.key
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
