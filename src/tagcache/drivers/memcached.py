"""Memcached storage driver."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Iterable, Sequence
from typing import Any

from tagcache.drivers.base import Driver, Number, to_entries, to_number
from tagcache.serializers import Serializer
from tagcache.tagset import TagSet
from tagcache.types import EntryLike

logger = logging.getLogger(__name__)

# memcached reads any larger expire as an absolute unix timestamp
_MAX_RELATIVE_EXPIRE = 30 * 24 * 60 * 60


def _decode_index(data: Any) -> list[str]:
    """Decode a stored tag index; anything unreadable counts as empty."""
    if data is None:
        return []
    try:
        refs = json.loads(data)
    except ValueError:
        return []
    return [ref for ref in refs if isinstance(ref, str)] if isinstance(refs, list) else []


def _encode_index(refs: list[str]) -> str:
    return json.dumps(refs)


def _expire(ttl: int | None) -> int:
    """Translate a ttl in seconds to the expire memcached expects."""
    if not ttl:
        return 0
    if ttl > _MAX_RELATIVE_EXPIRE:
        return int(time.time()) + ttl
    return ttl


class MemcachedDriver(Driver):
    """
    Async driver over a blocking pymemcache client.

    Client calls run in worker threads through ``asyncio.to_thread``, so
    the client must be safe to share between threads (``PooledClient``).

    Memcached has no set type: every tag index is a JSON array stored as an
    ordinary value and updated by read-modify-write. Two writers touching
    the same tag between the read and the write race, and the last one
    wins; a reference can be lost. An index emptied by forget() is deleted.

    TTLs longer than 30 days are sent as absolute unix timestamps.
    """

    def __init__(
        self,
        client: Any,  # pymemcache.client.base.PooledClient
        *,
        namespace: str | None = None,
        serializer: Serializer | None = None,
    ) -> None:
        super().__init__(namespace=namespace, serializer=serializer)
        self._client = client

    @property
    def client(self) -> Any:
        return self._client

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        self._ensure_open()
        return await asyncio.to_thread(getattr(self._client, method), *args, **kwargs)

    async def _read_indexes(self, tagset: TagSet) -> dict[str, list[str]]:
        """Fetch every index of the tagset, keyed by scoped index key."""
        index_keys = [self.scope(index_key) for index_key in tagset.keys]
        found = await self._call("get_many", index_keys)
        return {key: _decode_index(found.get(key)) for key in index_keys}

    async def _add_refs(self, refs: list[str], tagset: TagSet) -> None:
        indexes = await self._read_indexes(tagset)
        for index in indexes.values():
            for ref in refs:
                if ref not in index:
                    index.append(ref)
        await self._call(
            "set_many", {key: _encode_index(index) for key, index in indexes.items()}
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str, tagset: TagSet | None = None) -> Any | None:
        """Get an item by key."""
        data = await self._call("get", self.storage_key(key, tagset))
        return self.deserialize(data)

    async def get_many(
        self, keys: Sequence[str], tagset: TagSet | None = None
    ) -> list[Any | None]:
        """Get several items with one multi-get, in the order of keys."""
        if not keys:
            return []
        storage_keys = [self.storage_key(key, tagset) for key in keys]
        found = await self._call("get_many", storage_keys)
        return [self.deserialize(found.get(key)) for key in storage_keys]

    async def put(
        self,
        key: str,
        value: Any,
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        """Store an item; when tagged, update the indexes first (not atomic)."""
        if tagset is not None:
            await self._add_refs([tagset.ref(key)], tagset)
        await self._call(
            "set",
            self.storage_key(key, tagset),
            self.serialize(value),
            expire=_expire(ttl),
        )

    async def put_many(
        self,
        entries: Iterable[EntryLike],
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        """Store several items, indexing all of them in one read-modify-write."""
        items = to_entries(entries)
        if not items:
            return
        if tagset is not None:
            await self._add_refs([tagset.ref(entry.key) for entry in items], tagset)
        await self._call(
            "set_many",
            {
                self.storage_key(entry.key, tagset): self.serialize(entry.value)
                for entry in items
            },
            expire=_expire(ttl),
        )

    async def _change(
        self, key: str, amount: Number, tagset: TagSet | None
    ) -> Number:
        storage_key = self.storage_key(key, tagset)
        current = self.deserialize(await self._call("get", storage_key))
        value = to_number(current) + amount
        await self._call("set", storage_key, self.serialize(value), expire=0)
        return value

    async def increment(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        """Increase a numeric item (read, then write without expiry)."""
        return await self._change(key, amount, tagset)

    async def decrement(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        """Decrease a numeric item (read, then write without expiry)."""
        return await self._change(key, -amount, tagset)

    async def forget(self, key: str, tagset: TagSet | None = None) -> None:
        """Delete an item; when tagged, update or prune its indexes first."""
        if tagset is not None:
            ref = tagset.ref(key)
            indexes = await self._read_indexes(tagset)
            keep: dict[str, str] = {}
            prune: list[str] = []
            for index_key, index in indexes.items():
                if ref in index:
                    index.remove(ref)
                if index:
                    keep[index_key] = _encode_index(index)
                else:
                    prune.append(index_key)
            if keep:
                await self._call("set_many", keep)
            if prune:
                await self._call("delete_many", prune)
        await self._call("delete", self.storage_key(key, tagset))

    async def flush(self, tagset: TagSet | None = None) -> None:
        """Flush tagged items, or the whole server without tags.

        The untagged form issues flush_all: every key on the server is
        dropped, not only keys under this driver's namespace.
        """
        if tagset is None:
            await self._call("flush_all")
            return
        indexes = await self._read_indexes(tagset)
        doomed = list(indexes)
        for index in indexes.values():
            doomed.extend(self.scope(ref) for ref in index)
        await self._call("delete_many", doomed)
        logger.debug(
            "Flushed %d keys for tags %s", len(doomed), ",".join(tagset.names)
        )

    async def has(self, key: str, tagset: TagSet | None = None) -> bool:
        """Determine if an item exists."""
        return await self._call("get", self.storage_key(key, tagset)) is not None

    async def dispose(self) -> None:
        """Close the client connections."""
        if self._disposed:
            return
        self._disposed = True
        await asyncio.to_thread(self._client.close)
        logger.debug("Memcached driver disposed")
