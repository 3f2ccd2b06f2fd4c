import asyncio

import pytest

from listing_indexer.indexer import IndexContext
from listing_indexer.routes import THING_DATA, THING_VOTE_COUNTS
from listing_indexer.scope import ReadScope
from listing_indexer.store import flatten_put

TABULATOR = "local"


class MemoryGraphStore:
    """In-memory GraphStore with the same nested-put semantics as Redis."""

    def __init__(self):
        self.graph = {}
        self.reads = []
        self.puts = []

    async def get(self, soul):
        self.reads.append(soul)
        node = self.graph.get(soul)
        return dict(node) if node else None

    async def put(self, soul, payload):
        self.puts.append((soul, payload))
        for node_soul, fields in flatten_put(soul, payload).items():
            node = self.graph.setdefault(node_soul, {})
            for key, value in fields.items():
                if value is None:
                    node.pop(key, None)
                else:
                    node[key] = value

    def put_thing(self, thing_id, **data):
        self.graph[THING_DATA.reverse(thing_id=thing_id)] = data

    def put_scores(self, thing_id, tabulator=TABULATOR, **scores):
        self.graph[THING_VOTE_COUNTS.reverse(thing_id=thing_id, tabulator=tabulator)] = scores


class HangingStore(MemoryGraphStore):
    """Store whose reads and/or writes never complete."""

    def __init__(self, hang_reads=False, hang_writes=False):
        super().__init__()
        self.hang_reads = hang_reads
        self.hang_writes = hang_writes

    async def get(self, soul):
        if self.hang_reads:
            await asyncio.Event().wait()
        return await super().get(soul)

    async def put(self, soul, payload):
        if self.hang_writes:
            await asyncio.Event().wait()
        return await super().put(soul, payload)


class RecordingObserver:
    def __init__(self):
        self.records = []

    def record(self, thing_id, outcome, duration):
        self.records.append((thing_id, outcome, duration))


@pytest.fixture
def store():
    return MemoryGraphStore()


@pytest.fixture
def scope(store):
    return ReadScope(store, read_timeout=1.0, ttl=None)


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def context(store, scope, observer):
    return IndexContext(
        store=store,
        scope=scope,
        tabulator=TABULATOR,
        write_timeout=1.0,
        observer=observer,
    )
