import pytest

from listing_indexer.indexer import IndexContext, index_thing
from listing_indexer.observer import PassOutcome
from listing_indexer.routes import THING_LISTINGS_META, THING_VOTE_COUNTS, listing_soul
from listing_indexer.scope import ReadScope

from conftest import TABULATOR, HangingStore, RecordingObserver


async def top(scope, thing_id, tabulator):
    data = await scope.thing_scores(thing_id, tabulator) or {}
    return data.get("up", 0) - data.get("down", 0)


async def new(scope, thing_id, tabulator):
    data = await scope.thing_data(thing_id) or {}
    return data.get("timestamp", 0) / 1000


def _seed(store):
    store.put_thing(
        "s1", kind="submission", topic="news", authorId="alice", timestamp=1_700_000_000_000
    )
    store.put_scores("s1", up=5, down=2)


@pytest.mark.asyncio
async def test_pass_materializes_every_listing_and_sort(store, context):
    _seed(store)
    context.sorts = {"new": new, "top": top}

    assert await index_thing(context, "s1") == PassOutcome.INDEXED

    assert len(store.puts) == 1
    container, payload = store.puts[0]
    assert container == THING_LISTINGS_META.reverse(thing_id="s1", tabulator=TABULATOR)
    assert sorted(payload) == [
        "/t/all/new",
        "/t/all/top",
        "/t/news/new",
        "/t/news/top",
        "/user/alice/overview/new",
        "/user/alice/overview/top",
        "/user/alice/submitted/new",
        "/user/alice/submitted/top",
    ]

    assert store.graph[listing_soul(TABULATOR, "/t/news/top")] == {"s1": 3.0}
    assert store.graph[listing_soul(TABULATOR, "/t/all/new")] == {"s1": 1_700_000_000.0}
    assert store.graph[container]["/t/news/top"] == {"#": listing_soul(TABULATOR, "/t/news/top")}


@pytest.mark.asyncio
async def test_second_pass_for_unchanged_thing_writes_nothing(store, context):
    _seed(store)

    assert await index_thing(context, "s1") == PassOutcome.INDEXED
    assert await index_thing(context, "s1") == PassOutcome.UNCHANGED
    assert len(store.puts) == 1


@pytest.mark.asyncio
async def test_only_changed_scores_are_written(store, scope, context):
    _seed(store)
    context.sorts = {"new": new, "top": top}
    await index_thing(context, "s1")

    store.put_scores("s1", up=9, down=2)
    scope.invalidate([THING_VOTE_COUNTS.reverse(thing_id="s1", tabulator=TABULATOR)])

    assert await index_thing(context, "s1") == PassOutcome.INDEXED
    _, payload = store.puts[-1]
    assert all(key.endswith("/top") for key in payload)
    assert store.graph[listing_soul(TABULATOR, "/t/all/top")] == {"s1": 7.0}


@pytest.mark.asyncio
async def test_existing_entries_of_other_things_are_kept(store, context):
    _seed(store)
    context.sorts = {"top": top}
    store.graph[listing_soul(TABULATOR, "/t/news/top")] = {"other": 11.0}

    await index_thing(context, "s1")

    assert store.graph[listing_soul(TABULATOR, "/t/news/top")] == {"other": 11.0, "s1": 3.0}


@pytest.mark.asyncio
async def test_thing_without_listings_is_skipped(store, context, observer):
    store.put_thing("p1", kind="poll")

    assert await index_thing(context, "p1") == PassOutcome.SKIPPED
    assert await index_thing(context, "missing") == PassOutcome.SKIPPED
    assert store.puts == []
    assert [r[1] for r in observer.records] == [PassOutcome.SKIPPED, PassOutcome.SKIPPED]


@pytest.mark.asyncio
async def test_read_timeout_fails_the_pass_without_raising(caplog):
    store = HangingStore(hang_reads=True)
    observer = RecordingObserver()
    context = IndexContext(
        store=store,
        scope=ReadScope(store, read_timeout=0.01),
        tabulator=TABULATOR,
        observer=observer,
    )

    assert await index_thing(context, "s1") == PassOutcome.FAILED
    assert "Indexer error for s1 while describing" in caplog.text
    assert observer.records[0][0] == "s1"
    assert observer.records[0][1] == PassOutcome.FAILED
    assert observer.records[0][2] >= 0


@pytest.mark.asyncio
async def test_write_timeout_leaves_store_untouched(caplog):
    store = HangingStore(hang_writes=True)
    _seed(store)
    before = {soul: dict(node) for soul, node in store.graph.items()}
    context = IndexContext(
        store=store,
        scope=ReadScope(store),
        tabulator=TABULATOR,
        write_timeout=0.01,
        observer=RecordingObserver(),
    )

    assert await index_thing(context, "s1") == PassOutcome.FAILED
    assert "while writing" in caplog.text
    assert "Write timeout" in caplog.text
    assert store.graph == before


@pytest.mark.asyncio
async def test_sort_failure_is_swallowed(store, context):
    _seed(store)

    async def broken(scope, thing_id, tabulator):
        raise ValueError("bad sort")

    context.sorts = {"broken": broken}
    assert await index_thing(context, "s1") == PassOutcome.FAILED
    assert store.puts == []
