"""
Deduplicating index queue.

  • an id already pending is not added twice
  • an id enqueued while its pass is running is kept pending and runs again
    once that pass finishes (indexing is level-triggered: the last pass must
    see the last change)
  • at most one pass per id at a time; up to `concurrency` distinct ids run
    together (1 = strictly sequential)
  • a failing task is logged and never stops the drain
"""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from listing_indexer.telemetry import QUEUE_PENDING

logger = logging.getLogger(__name__)

IndexTask = Callable[[str], Awaitable[object]]


class IndexQueue:
    def __init__(self, task: IndexTask, concurrency: int = 1) -> None:
        self._task = task
        self.concurrency = max(1, concurrency)
        self._pending: dict[str, None] = {}
        self._in_flight: set[str] = set()
        self._processing = False
        self._drain: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    @property
    def in_flight(self) -> set[str]:
        return set(self._in_flight)

    @property
    def processing(self) -> bool:
        return self._processing

    def enqueue_many(self, ids: Iterable[str]) -> int:
        added = 0
        for thing_id in ids:
            if thing_id and thing_id not in self._pending:
                self._pending[thing_id] = None
                added += 1
        QUEUE_PENDING.set(len(self._pending))
        return added

    async def process(self) -> None:
        """Drain until nothing is pending. Returns at once if already draining."""
        if self._processing:
            return
        self._processing = True
        try:
            while self._pending:
                batch = self._take()
                await asyncio.gather(*[self._run(thing_id) for thing_id in batch])
        finally:
            self._processing = False

    def schedule(self) -> Optional[asyncio.Task]:
        """Start a background drain unless one is already running."""
        if self._drain is not None and not self._drain.done():
            return self._drain
        if self._processing or not self._pending:
            return self._drain
        self._drain = asyncio.create_task(self.process())
        return self._drain

    async def join(self) -> None:
        """Wait until no drain is running and nothing is left pending."""
        while self._drain is not None and not self._drain.done():
            await self._drain
            if self._pending and not self._processing:
                self.schedule()

    def _take(self) -> list[str]:
        batch: list[str] = []
        for thing_id in list(self._pending):
            if len(batch) >= self.concurrency:
                break
            if thing_id in self._in_flight:
                continue
            del self._pending[thing_id]
            batch.append(thing_id)
        QUEUE_PENDING.set(len(self._pending))
        return batch

    async def _run(self, thing_id: str) -> None:
        self._in_flight.add(thing_id)
        try:
            await self._task(thing_id)
        except Exception as exc:
            logger.error("Index task failed for %s: %s", thing_id, exc, exc_info=True)
        finally:
            self._in_flight.discard(thing_id)
