"""
Listing Indexer — Kafka consumer.

For every put diff on the change feed:
  1. Evict the diff's souls from the shared read scope.
  2. Extract the affected thing ids (thing records, and vote counts written
     by this tabulator).
  3. Enqueue them on the deduplicating index queue and make sure it drains.

Each queued id gets one indexing pass: compute the listings the thing
belongs to, score it under every sort, diff against the materialized listing
nodes in Redis and write the delta in one transaction.

Key design decisions:
  • Level-triggered — a pass recomputes from current store state and never
    applies the diff itself, so out-of-order completion is safe.
  • No retries — a failed pass is logged; the next diff for the thing
    corrects it.

Usage:
  python -m listing_indexer.main                  # consume the change feed
  python -m listing_indexer.main --reindex ID ... # one-off passes, then exit
"""
import argparse
import asyncio
import json
import logging
from typing import Any, Iterable, Optional

import redis.asyncio as aioredis
from aiokafka import AIOKafkaConsumer

from listing_indexer.config import settings
from listing_indexer.index_queue import IndexQueue
from listing_indexer.indexer import IndexContext, index_thing
from listing_indexer.ingest import ids_to_index, mutated_souls
from listing_indexer.observer import MetricsObserver, PassObserver
from listing_indexer.scope import ReadScope
from listing_indexer.store import GraphStore, RedisGraphStore
from listing_indexer.telemetry import (
    DIFF_IDS_TOTAL,
    DIFF_MESSAGES_TOTAL,
    setup_tracing,
    start_metrics_server,
)

logger = logging.getLogger(__name__)


class IndexerService:
    """Wires the shared scope, the queue and the indexing pass together."""

    def __init__(
        self,
        store: GraphStore,
        tabulator: Optional[str] = None,
        observer: Optional[PassObserver] = None,
    ) -> None:
        self.store = store
        self.scope = ReadScope(
            store,
            read_timeout=settings.read_timeout,
            max_entries=settings.read_cache_max_entries,
            ttl=settings.read_cache_ttl_seconds,
        )
        self.context = IndexContext(
            store=store,
            scope=self.scope,
            tabulator=tabulator or settings.tabulator,
            write_timeout=settings.write_timeout,
            observer=observer or MetricsObserver(),
        )
        self.queue = IndexQueue(self.index, concurrency=settings.index_concurrency)

    async def index(self, thing_id: str):
        return await index_thing(self.context, thing_id)

    def handle_diff(self, msg: Any) -> list[str]:
        DIFF_MESSAGES_TOTAL.inc()
        self.scope.invalidate(mutated_souls(msg))

        ids = ids_to_index(msg, self.context.tabulator)
        if ids:
            DIFF_IDS_TOTAL.inc(len(ids))
            self.queue.enqueue_many(ids)
        self.queue.schedule()
        return ids

    async def reindex(self, ids: Iterable[str]) -> None:
        self.queue.enqueue_many(ids)
        await self.queue.process()


async def connect_redis() -> aioredis.Redis:
    redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        username=settings.indexer if settings.redis_password else None,
        password=settings.redis_password,
        decode_responses=True,
    )
    await redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)
    return redis


async def consume(service: IndexerService) -> None:
    consumer = AIOKafkaConsumer(
        settings.kafka_topic_diffs,
        bootstrap_servers=settings.kafka_bootstrap_servers,
        group_id=settings.kafka_consumer_group,
        auto_offset_reset="latest",
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
    )
    await consumer.start()
    logger.info(
        "Listing indexer (tabulator=%s) listening on topic '%s'",
        service.context.tabulator,
        settings.kafka_topic_diffs,
    )

    try:
        async for msg in consumer:
            try:
                service.handle_diff(msg.value)
            except Exception as exc:
                logger.error("Bad diff message at offset %s: %s", msg.offset, exc)
    finally:
        await consumer.stop()
        await service.queue.join()


async def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Materialized listing indexer")
    parser.add_argument(
        "--reindex", nargs="+", metavar="THING_ID",
        help="index the given thing ids once and exit",
    )
    args = parser.parse_args(argv)

    setup_tracing()
    redis = await connect_redis()
    service = IndexerService(RedisGraphStore(redis))

    try:
        if args.reindex:
            await service.reindex(args.reindex)
        else:
            start_metrics_server()
            await consume(service)
    finally:
        await redis.aclose()


def run() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
