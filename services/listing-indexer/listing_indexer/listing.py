"""
Materialized listing nodes.

A listing node is one hash per (listing path, sort) whose fields are thing
ids and whose values are scores. Only the delta against the node as it
currently exists is ever written.
"""
from typing import Iterable, Optional

from listing_indexer.store import Node


def diff_listing(
    existing: Optional[Node],
    updated_items: Iterable[tuple[str, float]],
    removed_ids: Iterable[str] = (),
) -> Optional[Node]:
    """
    Minimal patch turning `existing` into a node containing `updated_items`
    and none of `removed_ids`. Removed fields map to None. Returns None when
    the node already matches.
    """
    existing = existing or {}
    patch: Node = {}

    for thing_id, score in updated_items:
        if not thing_id:
            continue
        if existing.get(thing_id) != score:
            patch[thing_id] = score

    for thing_id in removed_ids:
        if existing.get(thing_id) is not None and thing_id not in patch:
            patch[thing_id] = None

    return patch or None
