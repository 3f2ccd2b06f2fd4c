"""
Listing rules — which listings a thing belongs to.

  submission  /t/<topic>, topic rollups, /domain/<domain>,
              /user/<author>/{submitted,overview}, /user/<tagger>/commented
  comment     /things/<opId>/comments, /t/comments:<topic>, rollups,
              /user/<replyToAuthor>/replies/{overview,submitted|comments},
              /user/<author>/{comments,overview[,commands]}
  chatmsg     /t/chat:<topic>, rollups

Topic rollups (topic is trimmed and lower-cased first):
  topic "all"               nothing extra
  no dot, or leading dot    <prefix>all
  "<source>.<rest>"         <prefix><source>.all, plus <prefix>external.all
                            unless source is "test"
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from listing_indexer.config import settings
from listing_indexer.scope import ReadScope
from listing_indexer.sorts import SortFn, evaluate_sorts
from listing_indexer.things import (
    ChatMessage,
    Comment,
    Submission,
    Thing,
    ThingScores,
    UnknownThing,
    parse_thing,
)

logger = logging.getLogger(__name__)

TEST_SOURCE = "test"


@dataclass(frozen=True)
class Description:
    """A thing, the listings it belongs to, and its score under each sort."""

    id: str
    includes: list[str]
    sorts: list[tuple[str, float]] = field(default_factory=list)


def topic_listings(prefix: str, topic: str) -> list[str]:
    listings: list[str] = []
    if topic:
        listings.append(f"/t/{prefix}{topic}")

    if topic != "all":
        dot_idx = topic.find(".")
        if dot_idx <= 0:
            listings.append(f"/t/{prefix}all")
        else:
            source = topic[:dot_idx]
            if source != TEST_SOURCE:
                listings.append(f"/t/{prefix}external.all")
            listings.append(f"/t/{prefix}{source}.all")

    # "external.x" and "x.all" would otherwise repeat a rollup
    return list(dict.fromkeys(listings))


def listings_for(
    thing: Optional[Thing],
    scores: Optional[ThingScores] = None,
    reply_to: Optional[Thing] = None,
) -> list[str]:
    """Pure branch table; `reply_to` is the parsed replied-to thing, if any."""
    scores = scores or ThingScores()

    match thing:
        case Submission():
            listings = topic_listings("", thing.normalized_topic)
            if thing.domain_name:
                listings.append(f"/domain/{thing.domain_name}")
            if thing.author_id:
                listings.append(f"/user/{thing.author_id}/submitted")
                listings.append(f"/user/{thing.author_id}/overview")
            for tagger in scores.taggers:
                listings.append(f"/user/{tagger}/commented")
            return listings

        case Comment():
            listings = []
            if thing.op_id:
                listings.append(f"/things/{thing.op_id}/comments")
            listings.extend(topic_listings("comments:", thing.normalized_topic))

            if reply_to is not None and reply_to.author_id:
                replied = f"/user/{reply_to.author_id}/replies"
                listings.append(f"{replied}/overview")
                if isinstance(reply_to, Submission):
                    listings.append(f"{replied}/submitted")
                elif isinstance(reply_to, Comment):
                    listings.append(f"{replied}/comments")

            if thing.author_id:
                listings.append(f"/user/{thing.author_id}/comments")
                listings.append(f"/user/{thing.author_id}/overview")
                if thing.is_command:
                    listings.append(f"/user/{thing.author_id}/commands")
            return listings

        case ChatMessage():
            return topic_listings("chat:", thing.normalized_topic)

        case UnknownThing() | None:
            return []


async def get_listings(
    scope: ReadScope,
    thing_id: str,
    tabulator: Optional[str] = None,
) -> list[str]:
    if not thing_id:
        return []
    tabulator = tabulator or settings.tabulator

    data, scores = await asyncio.gather(
        scope.thing_data(thing_id),
        scope.thing_scores(thing_id, tabulator),
    )
    thing = parse_thing(data)
    if thing is None:
        return []

    reply_to = None
    if isinstance(thing, Comment) and thing.reply_to_id:
        reply_to = parse_thing(await scope.thing_data(thing.reply_to_id))

    return list(dict.fromkeys(listings_for(thing, ThingScores.parse(scores), reply_to)))


async def describe_thing(
    scope: ReadScope,
    thing_id: str,
    tabulator: Optional[str] = None,
    sorts: Optional[dict[str, SortFn]] = None,
) -> Optional[Description]:
    if not thing_id:
        return None
    tabulator = tabulator or settings.tabulator

    includes = await get_listings(scope, thing_id, tabulator)
    if not includes:
        return None

    return Description(
        id=thing_id,
        includes=includes,
        sorts=await evaluate_sorts(scope, thing_id, tabulator, sorts),
    )
