"""In-memory storage driver (async only)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from tagcache.drivers.base import Driver, Number, to_entries, to_number
from tagcache.serializers import Serializer
from tagcache.tagset import TagSet, tag_key
from tagcache.types import EntryLike

logger = logging.getLogger(__name__)


class MemoryDriver(Driver):
    """
    Process-local driver with a periodic expiration sweep.

    TTLs are counted in sweep ticks. With the default interval of one second
    a tick is a second, matching the remote drivers. Operations never await,
    so each one runs to completion without interleaving with the sweep.

    Tag indexes are plain lists. Expired entries are not removed from the
    indexes that reference them, and an index emptied by forget() is kept.
    """

    def __init__(
        self,
        *,
        namespace: str | None = None,
        serializer: Serializer | None = None,
        interval: float | None = 1.0,
    ) -> None:
        super().__init__(namespace=namespace, serializer=serializer)
        self._values: dict[str, Any] = {}
        self._indexes: dict[str, list[str]] = {}
        self._roster: dict[str, int] = {}
        self._interval = interval
        self._sweeper: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    def tick(self) -> list[str]:
        """Advance every countdown by one tick and evict what reaches zero."""
        expired: list[str] = []
        # Iterate over a snapshot; forget() may drop roster entries meanwhile
        for key, remaining in list(self._roster.items()):
            if remaining <= 1:
                self._roster.pop(key, None)
                self._values.pop(key, None)
                expired.append(key)
            else:
                self._roster[key] = remaining - 1
        if expired:
            logger.debug("Swept %d expired entries", len(expired))
        return expired

    async def _sweep(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.tick()

    def _touch(self) -> None:
        """Guard against use after dispose and start the sweep on first use."""
        self._ensure_open()
        if self._sweeper is None and self._interval:
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep(self._interval)
            )

    def _store(self, key: str, data: Any, ttl: int | None) -> None:
        self._values[key] = data
        if ttl:
            self._roster[key] = ttl
        else:
            self._roster.pop(key, None)

    def _discard(self, key: str) -> None:
        self._values.pop(key, None)
        self._roster.pop(key, None)

    def _index(self, ref: str, tagset: TagSet) -> None:
        for index_key in tagset.keys:
            refs = self._indexes.setdefault(self.scope(index_key), [])
            if ref not in refs:
                refs.append(ref)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str, tagset: TagSet | None = None) -> Any | None:
        self._touch()
        return self.deserialize(self._values.get(self.storage_key(key, tagset)))

    async def get_many(
        self, keys: Sequence[str], tagset: TagSet | None = None
    ) -> list[Any | None]:
        self._touch()
        return [
            self.deserialize(self._values.get(self.storage_key(key, tagset)))
            for key in keys
        ]

    async def put(
        self,
        key: str,
        value: Any,
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        self._touch()
        if tagset is not None:
            self._index(tagset.ref(key), tagset)
        self._store(self.storage_key(key, tagset), self.serialize(value), ttl)

    async def put_many(
        self,
        entries: Iterable[EntryLike],
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        for entry in to_entries(entries):
            await self.put(entry.key, entry.value, ttl, tagset)

    async def _change(
        self, key: str, amount: Number, tagset: TagSet | None
    ) -> Number:
        self._touch()
        storage_key = self.storage_key(key, tagset)
        value = to_number(self.deserialize(self._values.get(storage_key))) + amount
        # The countdown in the roster, if any, is left running
        self._values[storage_key] = self.serialize(value)
        return value

    async def increment(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        return await self._change(key, amount, tagset)

    async def decrement(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        return await self._change(key, -amount, tagset)

    async def forget(self, key: str, tagset: TagSet | None = None) -> None:
        self._touch()
        if tagset is not None:
            ref = tagset.ref(key)
            for index_key in tagset.keys:
                refs = self._indexes.get(self.scope(index_key))
                if refs and ref in refs:
                    refs.remove(ref)
        self._discard(self.storage_key(key, tagset))

    async def flush(self, tagset: TagSet | None = None) -> None:
        self._touch()
        if tagset is None:
            self._values.clear()
            self._roster.clear()
            self._indexes.clear()
            return
        for index_key in tagset.keys:
            refs = self._indexes.pop(self.scope(index_key), [])
            for ref in refs:
                self._discard(self.scope(ref))
            logger.debug("Flushed %d entries tagged %s", len(refs), index_key)

    async def has(self, key: str, tagset: TagSet | None = None) -> bool:
        self._touch()
        return self.storage_key(key, tagset) in self._values

    async def dispose(self) -> None:
        """Stop the sweep and drop all state."""
        if self._disposed:
            return
        self._disposed = True
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        self._values.clear()
        self._indexes.clear()
        self._roster.clear()
        logger.debug("Memory driver disposed")

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def index(self, name: str) -> list[str] | None:
        """References currently listed in the index of a tag name."""
        refs = self._indexes.get(self.scope(tag_key(name)))
        return None if refs is None else list(refs)

    def ttl(self, key: str, tagset: TagSet | None = None) -> int | None:
        """Remaining sweep ticks for an item, or None if it never expires."""
        return self._roster.get(self.storage_key(key, tagset))
