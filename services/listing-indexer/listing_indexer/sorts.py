"""
Sort registry.

Every registered sort maps a thing to one scalar score per listing. The set of
names is fixed once the module is imported; the indexer writes one listing
node per (listing path, sort name).

Convention: a higher score ranks first (the reader does ZREVRANGE-style
ordering over the materialized node).

Scores:
  new            = creation time (seconds)
  top            = up - down
  discussed      = comment count
  hot            = sign * log10(|net votes|) + age / 45000
  controversial  = (up + down) ** balance, balance = min/max of up/down
"""
import asyncio
import logging
import math
from typing import Awaitable, Callable

from listing_indexer.scope import ReadScope
from listing_indexer.things import ThingScores, parse_thing

logger = logging.getLogger(__name__)

SortFn = Callable[[ReadScope, str, str], Awaitable[float]]

SORTS: dict[str, SortFn] = {}

# Epoch offset for the hot sort (Dec 8 2005), keeps the age term small
HOT_EPOCH_SECONDS = 1134028003
HOT_DECAY_SECONDS = 45000


def register_sort(name: str):
    def decorator(fn: SortFn) -> SortFn:
        SORTS[name] = fn
        return fn
    return decorator


async def _created_at(scope: ReadScope, thing_id: str) -> float:
    thing = parse_thing(await scope.thing_data(thing_id))
    return (thing.timestamp / 1000) if thing else 0.0


async def _scores(scope: ReadScope, thing_id: str, tabulator: str) -> ThingScores:
    return ThingScores.parse(await scope.thing_scores(thing_id, tabulator))


@register_sort("new")
async def sort_new(scope: ReadScope, thing_id: str, tabulator: str) -> float:
    return await _created_at(scope, thing_id)


@register_sort("top")
async def sort_top(scope: ReadScope, thing_id: str, tabulator: str) -> float:
    scores = await _scores(scope, thing_id, tabulator)
    return scores.up - scores.down


@register_sort("discussed")
async def sort_discussed(scope: ReadScope, thing_id: str, tabulator: str) -> float:
    scores = await _scores(scope, thing_id, tabulator)
    return scores.comment


@register_sort("hot")
async def sort_hot(scope: ReadScope, thing_id: str, tabulator: str) -> float:
    scores, created_at = await asyncio.gather(
        _scores(scope, thing_id, tabulator), _created_at(scope, thing_id)
    )
    net = scores.up - scores.down
    order = math.log10(max(abs(net), 1))
    sign = 1 if net > 0 else -1 if net < 0 else 0
    seconds = created_at - HOT_EPOCH_SECONDS
    return round(sign * order + seconds / HOT_DECAY_SECONDS, 7)


@register_sort("controversial")
async def sort_controversial(scope: ReadScope, thing_id: str, tabulator: str) -> float:
    scores = await _scores(scope, thing_id, tabulator)
    up, down = scores.up, scores.down
    if up <= 0 or down <= 0:
        return 0.0
    balance = down / up if up > down else up / down
    return round((up + down) ** balance, 7)


async def evaluate_sorts(
    scope: ReadScope,
    thing_id: str,
    tabulator: str,
    sorts: dict[str, SortFn] | None = None,
) -> list[tuple[str, float]]:
    """Score the thing under every sort concurrently, in registry order."""
    sorts = SORTS if sorts is None else sorts
    names = list(sorts)
    values = await asyncio.gather(
        *[sorts[name](scope, thing_id, tabulator) for name in names]
    )
    return [(name, float(value)) for name, value in zip(names, values)]
