"""
Graph store adapter.

Layout in Redis:
  • every soul is a HASH keyed by the soul itself
  • field values are JSON-encoded
  • a reference to another node is stored as {"#": <soul>}

A put payload may nest nodes the way a gun graph put does:

    {"/t/all/new": {"_": {"#": "/listings@~tab./t/all/new"}, "thing1": 12.0}}

Nested nodes are written under their own soul and the parent field becomes a
reference. All hashes touched by one put are written in one MULTI/EXEC.
A field set to None is deleted.
"""
import json
import logging
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

Node = dict[str, Any]


class GraphStore(Protocol):
    async def get(self, soul: str) -> Optional[Node]:
        ...

    async def put(self, soul: str, payload: Node) -> None:
        ...


def is_ref(value: Any) -> bool:
    return isinstance(value, dict) and list(value) == ["#"]


def _node_soul(value: dict) -> Optional[str]:
    meta = value.get("_")
    if isinstance(meta, dict) and isinstance(meta.get("#"), str):
        return meta["#"]
    return None


def flatten_put(soul: str, payload: Node) -> dict[str, Node]:
    """Split a nested put payload into {soul: fields} for every node it touches."""
    graph: dict[str, Node] = {}
    _flatten(soul, payload, graph)
    return graph


def _flatten(soul: str, node: Node, graph: dict[str, Node]) -> None:
    fields = graph.setdefault(soul, {})
    for key, value in node.items():
        if key == "_":
            continue
        if isinstance(value, dict) and not is_ref(value):
            child = _node_soul(value) or f"{soul}/{key}"
            _flatten(child, value, graph)
            fields[key] = {"#": child}
        else:
            fields[key] = value


class RedisGraphStore:
    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def get(self, soul: str) -> Optional[Node]:
        raw = await self._redis.hgetall(soul)
        if not raw:
            return None
        return {k: json.loads(v) for k, v in raw.items()}

    async def put(self, soul: str, payload: Node) -> None:
        graph = flatten_put(soul, payload)
        pipe = self._redis.pipeline(transaction=True)
        for node_soul, fields in graph.items():
            updates = {k: json.dumps(v) for k, v in fields.items() if v is not None}
            removed = [k for k, v in fields.items() if v is None]
            if updates:
                pipe.hset(node_soul, mapping=updates)
            if removed:
                pipe.hdel(node_soul, *removed)
        await pipe.execute()
        logger.debug("Put %d node(s) under %s", len(graph), soul)
