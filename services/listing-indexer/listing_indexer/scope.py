"""
Shared read scope.

One ReadScope is built at service start and handed to every indexing pass.
It memoizes store reads by soul and bounds each read with a deadline.

Coherence: a cached node may lag the store. The store is merge-based, so a
stale read can never corrupt a write; at worst a pass acts on slightly old
source data. Entries expire after `ttl` seconds, and the service evicts every
soul named in a change-feed message (and every soul it writes) so the pass
triggered by that message reads fresh state.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

from listing_indexer.errors import ReadTimeout
from listing_indexer.routes import THING_DATA, THING_VOTE_COUNTS
from listing_indexer.store import GraphStore, Node, is_ref

logger = logging.getLogger(__name__)

_MISS = object()


class ReadScope:
    def __init__(
        self,
        store: GraphStore,
        read_timeout: float = 2.0,
        max_entries: int = 10_000,
        ttl: Optional[float] = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self.read_timeout = read_timeout
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._cache: OrderedDict[str, tuple[float, Optional[Node]]] = OrderedDict()
        self._inflight: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, soul: str) -> bool:
        return self._lookup(soul) is not _MISS

    async def get(self, soul: str) -> Optional[Node]:
        cached = self._lookup(soul)
        if cached is not _MISS:
            return cached

        task = self._inflight.get(soul)
        if task is None:
            task = asyncio.create_task(self._read(soul))
            self._inflight[soul] = task
        return await task

    def invalidate(self, souls) -> int:
        dropped = 0
        for soul in souls:
            if self._cache.pop(soul, None) is not None:
                dropped += 1
            # a read already in flight may have started before the change
            self._inflight.pop(soul, None)
        return dropped

    def clear(self) -> None:
        self._cache.clear()
        self._inflight.clear()

    async def thing_data(self, thing_id: str) -> Optional[Node]:
        soul = THING_DATA.reverse(thing_id=thing_id)
        return await self.get(soul) if soul else None

    async def thing_scores(self, thing_id: str, tabulator: str) -> Optional[Node]:
        soul = THING_VOTE_COUNTS.reverse(thing_id=thing_id, tabulator=tabulator)
        node = await self.get(soul) if soul else None
        if node and is_ref(node.get("commands")):
            commands = await self.get(node["commands"]["#"])
            node = {**node, "commands": commands or {}}
        return node

    # ── internals ────────────────────────────────────────────────────────

    def _lookup(self, soul: str):
        entry = self._cache.get(soul)
        if entry is None:
            return _MISS
        stored_at, node = entry
        if self.ttl is not None and self._clock() - stored_at >= self.ttl:
            del self._cache[soul]
            return _MISS
        self._cache.move_to_end(soul)
        return node

    def _remember(self, soul: str, node: Optional[Node]) -> None:
        self._cache[soul] = (self._clock(), node)
        self._cache.move_to_end(soul)
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)

    async def _read(self, soul: str) -> Optional[Node]:
        current = asyncio.current_task()
        try:
            try:
                node = await asyncio.wait_for(self._store.get(soul), self.read_timeout)
            except asyncio.TimeoutError:
                raise ReadTimeout(soul, self.read_timeout) from None
            if self._inflight.get(soul) is current:
                self._remember(soul, node)
            return node
        finally:
            if self._inflight.get(soul) is current:
                del self._inflight[soul]
