"""Redis storage driver."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from tagcache.drivers.base import Driver, Number, to_entries, to_number
from tagcache.serializers import Serializer
from tagcache.tagset import TagSet
from tagcache.types import EntryLike

logger = logging.getLogger(__name__)

# KEYS: tag index keys. ARGV[1]: prefix applied to every stored reference.
# Deletes the union of all referenced keys and the indexes in one step,
# in chunks to stay under the unpack() argument limit.
FLUSH_TAGS_SCRIPT = """
local refs = redis.call("SUNION", unpack(KEYS))
local keys = {}
for _, key in ipairs(KEYS) do
    table.insert(keys, key)
end
for _, ref in ipairs(refs) do
    table.insert(keys, ARGV[1] .. ref)
end
local deleted = 0
for i = 1, #keys, 1000 do
    deleted = deleted + redis.call("DEL", unpack(keys, i, math.min(i + 999, #keys)))
end
return deleted
"""


class RedisDriver(Driver):
    """
    Async Redis driver.

    Tag indexes are native sets. Tagged writes and removals run in a
    MULTI/EXEC transaction together with the value write, and tagged
    flushes run as a single Lua script, so readers never observe an index
    and its values out of step.

    increment() and decrement() are GET followed by SET rather than INCRBY,
    which keeps values going through the serializer. Two concurrent
    increments of the same key can therefore lose an update.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        namespace: str | None = None,
        serializer: Serializer | None = None,
    ) -> None:
        super().__init__(namespace=namespace, serializer=serializer)
        self._client = client
        self._flush_tags = client.register_script(FLUSH_TAGS_SCRIPT)

    @property
    def client(self) -> Any:
        return self._client

    def _prefix(self) -> str:
        return f"{self.namespace}:" if self.namespace else ""

    async def get(self, key: str, tagset: TagSet | None = None) -> Any | None:
        """Get an item by key."""
        self._ensure_open()
        data = await self._client.get(self.storage_key(key, tagset))
        return self.deserialize(data)

    async def get_many(
        self, keys: Sequence[str], tagset: TagSet | None = None
    ) -> list[Any | None]:
        """Get several items with one MGET."""
        self._ensure_open()
        if not keys:
            return []
        values = await self._client.mget([self.storage_key(k, tagset) for k in keys])
        return [self.deserialize(data) for data in values]

    async def put(
        self,
        key: str,
        value: Any,
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        """Store an item, indexing it in the same transaction when tagged."""
        self._ensure_open()
        data = self.serialize(value)
        if tagset is None:
            await self._client.set(self.scope(key), data, ex=ttl or None)
            return

        ref = tagset.ref(key)
        async with self._client.pipeline(transaction=True) as pipe:
            for index_key in tagset.keys:
                pipe.sadd(self.scope(index_key), ref)
            pipe.set(self.scope(ref), data, ex=ttl or None)
            await pipe.execute()

    async def put_many(
        self,
        entries: Iterable[EntryLike],
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        """Store several items in one transaction."""
        self._ensure_open()
        items = to_entries(entries)
        if not items:
            return
        async with self._client.pipeline(transaction=True) as pipe:
            for entry in items:
                if tagset is not None:
                    ref = tagset.ref(entry.key)
                    for index_key in tagset.keys:
                        pipe.sadd(self.scope(index_key), ref)
                pipe.set(
                    self.storage_key(entry.key, tagset),
                    self.serialize(entry.value),
                    ex=ttl or None,
                )
            await pipe.execute()

    async def _change(
        self, key: str, amount: Number, tagset: TagSet | None
    ) -> Number:
        self._ensure_open()
        storage_key = self.storage_key(key, tagset)
        current = self.deserialize(await self._client.get(storage_key))
        value = to_number(current) + amount
        # Plain SET: the result never expires on its own
        await self._client.set(storage_key, self.serialize(value))
        return value

    async def increment(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        """Increase a numeric item (read, then write)."""
        return await self._change(key, amount, tagset)

    async def decrement(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        """Decrease a numeric item (read, then write)."""
        return await self._change(key, -amount, tagset)

    async def forget(self, key: str, tagset: TagSet | None = None) -> None:
        """Delete an item, removing it from its indexes in the same transaction."""
        self._ensure_open()
        if tagset is None:
            await self._client.delete(self.scope(key))
            return

        ref = tagset.ref(key)
        async with self._client.pipeline(transaction=True) as pipe:
            for index_key in tagset.keys:
                pipe.srem(self.scope(index_key), ref)
            pipe.delete(self.scope(ref))
            await pipe.execute()

    async def flush(self, tagset: TagSet | None = None) -> None:
        """Flush tagged items atomically, or the whole server without tags.

        The untagged form issues FLUSHALL: every database on the server is
        emptied, not only keys under this driver's namespace.
        """
        self._ensure_open()
        if tagset is None:
            await self._client.flushall()
            return
        if not tagset.keys:
            return

        index_keys = [self.scope(index_key) for index_key in tagset.keys]
        deleted = await self._flush_tags(keys=index_keys, args=[self._prefix()])
        logger.debug("Flushed %s keys for tags %s", deleted, ",".join(tagset.names))

    async def has(self, key: str, tagset: TagSet | None = None) -> bool:
        """Determine if an item exists."""
        self._ensure_open()
        return bool(await self._client.exists(self.storage_key(key, tagset)))

    async def dispose(self) -> None:
        """Close the Redis connection."""
        if self._disposed:
            return
        self._disposed = True
        await self._client.aclose()
        logger.debug("Redis driver disposed")
