"""Core types for tagcache."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Entry(Generic[T]):
    """A key/value pair for batched writes."""

    key: str
    value: T


# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or seconds

# What put_many() accepts per item
EntryLike = Entry[Any] | tuple[str, Any]
