"""
Change-feed ingestion: which things does a put diff affect?

Message shape: {"put": {<soul>: <node>, ...}}. A soul matching the thing
route or the vote-count route names a thing to reindex. Vote counts written
under another tabulator are ignored so foreign tallies never trigger local
work. Anything else contributes no ids.
"""
import logging
from typing import Any, Optional

from listing_indexer.config import settings
from listing_indexer.routes import THING, THING_VOTE_COUNTS

logger = logging.getLogger(__name__)


def mutated_souls(msg: Any) -> list[str]:
    put = msg.get("put") if isinstance(msg, dict) else None
    if not isinstance(put, dict):
        return []
    return [soul for soul in put if soul and isinstance(soul, str)]


def ids_to_index(msg: Any, tabulator: Optional[str] = None) -> list[str]:
    """Thing ids affected by a diff, de-duplicated in first-seen order."""
    tabulator = tabulator or settings.tabulator
    ids: list[str] = []

    for soul in mutated_souls(msg):
        thing_match = THING.match(soul)
        counts_match = THING_VOTE_COUNTS.match(soul)
        if counts_match and counts_match["tabulator"] != tabulator:
            continue

        thing_id = (thing_match or counts_match or {}).get("thing_id", "")
        if thing_id and thing_id not in ids:
            ids.append(thing_id)

    return ids
