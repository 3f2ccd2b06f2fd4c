from typing import Optional

from listing_indexer.rules import Description

# (listing key, [(thing_id, score)]) — key is "<listingPath>/<sortName>"
IndexUpdate = tuple[str, list[tuple[str, float]]]


def description_to_listing_map(description: Optional[Description]) -> list[IndexUpdate]:
    """Cross listings with sorts: one single-entry update per listing key."""
    if description is None:
        return []

    updates: dict[str, list[tuple[str, float]]] = {}
    for listing in description.includes:
        for sort_name, score in description.sorts:
            key = f"{listing}/{sort_name}"
            if key not in updates:
                updates[key] = [(description.id, score)]
    return list(updates.items())
