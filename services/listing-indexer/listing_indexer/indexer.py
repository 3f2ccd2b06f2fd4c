"""
One indexing pass for one thing.

  describe   rules + sorts → Description
  plan       Description → [(listing key, [(thing_id, score)])]
  fetch      read every distinct listing node concurrently (shared scope)
  diff       minimal patch per listing node
  write      one deadline-bounded put of all patches under the thing's
             listings container

A pass recomputes everything from current store state, so passes for the
same thing may finish in any order as long as one runs after the last
relevant change. Any failure is logged and swallowed: the pass reports
FAILED, the store is left as it was, and only a later diff retries it.
"""
import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from listing_indexer.errors import IndexerError, WriteTimeout
from listing_indexer.listing import diff_listing
from listing_indexer.observer import MetricsObserver, PassObserver, PassOutcome
from listing_indexer.planner import description_to_listing_map
from listing_indexer.routes import THING_LISTINGS_META, listing_soul
from listing_indexer.rules import describe_thing
from listing_indexer.scope import ReadScope
from listing_indexer.sorts import SortFn
from listing_indexer.store import GraphStore, Node

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PassState(str, enum.Enum):
    PENDING = "pending"
    DESCRIBING = "describing"
    PLANNING = "planning"
    FETCHING = "fetching"
    DIFFING = "diffing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class IndexContext:
    store: GraphStore
    scope: ReadScope
    tabulator: str
    write_timeout: float = 2.0
    sorts: Optional[dict[str, SortFn]] = None
    observer: PassObserver = field(default_factory=MetricsObserver)


async def persist(store: GraphStore, soul: str, payload: Node, timeout: float) -> None:
    try:
        await asyncio.wait_for(store.put(soul, payload), timeout)
    except asyncio.TimeoutError:
        raise WriteTimeout(soul, timeout) from None


async def index_thing(ctx: IndexContext, thing_id: str) -> PassOutcome:
    started = time.perf_counter()
    state = PassState.PENDING
    outcome = PassOutcome.FAILED

    with tracer.start_as_current_span("index_thing") as span:
        span.set_attribute("thing.id", thing_id)
        try:
            state = PassState.DESCRIBING
            if not ctx.tabulator:
                raise IndexerError("No tabulator configured")
            description = await describe_thing(ctx.scope, thing_id, ctx.tabulator, ctx.sorts)

            state = PassState.PLANNING
            listing_map = description_to_listing_map(description)
            span.set_attribute("index.listing_keys", len(listing_map))

            if not listing_map:
                outcome = PassOutcome.SKIPPED
            else:
                state = PassState.FETCHING
                souls = {key: listing_soul(ctx.tabulator, key) for key, _ in listing_map}
                distinct = list(dict.fromkeys(souls.values()))
                fetched = await asyncio.gather(*[ctx.scope.get(soul) for soul in distinct])
                nodes = dict(zip(distinct, fetched))

                state = PassState.DIFFING
                put_data: Node = {}
                for key, updated_items in listing_map:
                    soul = souls[key]
                    patch = diff_listing(nodes.get(soul), updated_items)
                    if patch:
                        put_data[key] = {"_": {"#": soul}, **patch}
                span.set_attribute("index.changed_keys", len(put_data))

                if put_data:
                    state = PassState.WRITING
                    container = THING_LISTINGS_META.reverse(
                        thing_id=thing_id, tabulator=ctx.tabulator
                    )
                    await persist(ctx.store, container, put_data, ctx.write_timeout)
                    ctx.scope.invalidate(souls[key] for key in put_data)
                    outcome = PassOutcome.INDEXED
                else:
                    outcome = PassOutcome.UNCHANGED

            state = PassState.DONE
        except Exception as exc:
            outcome = PassOutcome.FAILED
            logger.error(
                "Indexer error for %s while %s: %s", thing_id, state.value, exc,
                exc_info=True,
            )
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))

        span.set_attribute("index.outcome", outcome.value)

    ctx.observer.record(thing_id, outcome, time.perf_counter() - started)
    return outcome
