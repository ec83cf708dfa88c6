"""Tag sets and reference key derivation."""

import hashlib
from collections.abc import Iterable

TAG_KEY_PREFIX = "tags:"


def tag_key(name: str) -> str:
    """Storage key of the index that lists references tagged with name."""
    return f"{TAG_KEY_PREFIX}{name}"


class TagSet:
    """
    An ordered set of tag names and the reference namespace derived from it.

    Names are kept exactly as given: no sorting, no deduplication. The
    reference namespace is the hex SHA-1 of the index keys joined with
    ``|``, so ``TagSet("a", "b")`` and ``TagSet("b", "a")`` store their
    entries under different keys.

    Example:
        tags = TagSet("users", "admins")
        tags.keys          # ("tags:users", "tags:admins")
        tags.ref("user:1") # "<sha1 of 'tags:users|tags:admins'>:user:1"
    """

    __slots__ = ("_names", "_keys", "_namespace", "_hash")

    def __init__(self, *names: str) -> None:
        self._names = tuple(names)
        self._keys = tuple(tag_key(name) for name in self._names)
        self._namespace = "|".join(self._keys)
        self._hash = hashlib.sha1(self._namespace.encode("utf-8")).hexdigest()

    @classmethod
    def of(cls, names: "TagSet | str | Iterable[str]") -> "TagSet":
        """Coerce a name, a sequence of names or a TagSet into a TagSet."""
        if isinstance(names, TagSet):
            return names
        if isinstance(names, str):
            return cls(names)
        return cls(*names)

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def hash(self) -> str:
        return self._hash

    def ref(self, key: str) -> str:
        """Reference key under which a tagged entry is actually stored."""
        return f"{self._hash}:{key}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagSet):
            return NotImplemented
        return self._names == other._names

    def __hash__(self) -> int:
        return hash(self._names)

    def __repr__(self) -> str:
        return f"TagSet({', '.join(repr(name) for name in self._names)})"
