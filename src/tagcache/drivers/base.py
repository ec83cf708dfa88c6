"""Driver contract shared by every storage backend."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from typing import Any

from tagcache.errors import DriverDisposedError, InvalidOperandError
from tagcache.serializers import Serializer
from tagcache.tagset import TagSet
from tagcache.types import Entry, EntryLike

Number = int | float

# Plain decimal text only: no nan/inf, underscores or surrounding whitespace
_INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+\Z")
_DECIMAL_PATTERN = re.compile(r"^[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?\Z")


def to_number(value: Any) -> Number:
    """Coerce a stored value to a number, raising InvalidOperandError."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidOperandError(f"Cannot change a non-number value: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return value
    elif isinstance(value, (bytes, str)):
        text = value.decode(errors="replace") if isinstance(value, bytes) else value
        if _INTEGER_PATTERN.match(text):
            return int(text)
        if _DECIMAL_PATTERN.match(text) and math.isfinite(parsed := float(text)):
            return parsed
    raise InvalidOperandError(f"Cannot change a non-number value: {value!r}")


def to_entries(entries: Iterable[EntryLike]) -> list[Entry[Any]]:
    """Normalize Entry objects and (key, value) tuples."""
    return [
        item if isinstance(item, Entry) else Entry(key=item[0], value=item[1])
        for item in entries
    ]


class Driver:
    """
    Base class for storage backends.

    Every operation takes an optional TagSet. With a TagSet the entry is
    stored under ``tagset.ref(key)`` and the tag indexes named by the set
    are kept in sync; without one the plain key is used.

    Subclasses implement the async operations; this class provides key
    scoping, the serializer hooks and the disposed-state guard.
    """

    def __init__(
        self,
        *,
        namespace: str | None = None,
        serializer: Serializer | None = None,
    ) -> None:
        self.namespace = namespace
        self.serializer = serializer
        self._disposed = False

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str, tagset: TagSet | None = None) -> Any | None:
        """Retrieve an item, or None when absent."""
        raise NotImplementedError(f"{type(self).__name__}.get")

    async def get_many(
        self, keys: Sequence[str], tagset: TagSet | None = None
    ) -> list[Any | None]:
        """Retrieve several items, in the order of keys."""
        raise NotImplementedError(f"{type(self).__name__}.get_many")

    async def put(
        self,
        key: str,
        value: Any,
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        """Store an item; ttl of None or 0 means no expiration."""
        raise NotImplementedError(f"{type(self).__name__}.put")

    async def put_many(
        self,
        entries: Iterable[EntryLike],
        ttl: int | None,
        tagset: TagSet | None = None,
    ) -> None:
        """Store several items with the same ttl."""
        raise NotImplementedError(f"{type(self).__name__}.put_many")

    async def increment(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        """Add amount to a numeric item (absent counts as 0)."""
        raise NotImplementedError(f"{type(self).__name__}.increment")

    async def decrement(
        self, key: str, amount: Number = 1, tagset: TagSet | None = None
    ) -> Number:
        """Subtract amount from a numeric item (absent counts as 0)."""
        raise NotImplementedError(f"{type(self).__name__}.decrement")

    async def forever(
        self, key: str, value: Any, tagset: TagSet | None = None
    ) -> None:
        """Store an item that only forget() or flush() removes."""
        await self.put(key, value, None, tagset)

    async def forget(self, key: str, tagset: TagSet | None = None) -> None:
        """Remove an item."""
        raise NotImplementedError(f"{type(self).__name__}.forget")

    async def flush(self, tagset: TagSet | None = None) -> None:
        """Remove every item under the tagset, or everything without one."""
        raise NotImplementedError(f"{type(self).__name__}.flush")

    async def has(self, key: str, tagset: TagSet | None = None) -> bool:
        """Determine if an item exists."""
        raise NotImplementedError(f"{type(self).__name__}.has")

    async def dispose(self) -> None:
        """Release backend resources. The driver is unusable afterwards."""
        raise NotImplementedError(f"{type(self).__name__}.dispose")

    # -------------------------------------------------------------------------
    # Helpers for subclasses
    # -------------------------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    def scope(self, *parts: str) -> str:
        """Join key parts and prefix them with the namespace."""
        key = ":".join(parts)
        return f"{self.namespace}:{key}" if self.namespace else key

    def storage_key(self, key: str, tagset: TagSet | None = None) -> str:
        """Scoped key an item lives under, resolving tag references."""
        if tagset is not None:
            key = tagset.ref(key)
        return self.scope(key)

    def serialize(self, value: Any) -> Any:
        if self.serializer is None or value is None:
            return value
        return self.serializer.serialize(value)

    def deserialize(self, data: Any) -> Any:
        if self.serializer is None or data is None:
            return data
        return self.serializer.deserialize(data)

    def _ensure_open(self) -> None:
        if self._disposed:
            raise DriverDisposedError(f"{type(self).__name__} has been disposed")
