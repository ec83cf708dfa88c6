"""Value codecs used by drivers before writing to storage."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

# msgpack extension code for datetime values
_DATETIME_EXT = 0x0D


class Serializer:
    """Base value codec."""

    name = "base"

    def serialize(self, value: Any) -> str | bytes:
        """Encode a value for storage."""
        raise NotImplementedError(f"{type(self).__name__}.serialize")

    def deserialize(self, data: str | bytes) -> Any:
        """Decode a stored value."""
        raise NotImplementedError(f"{type(self).__name__}.deserialize")


class JsonSerializer(Serializer):
    """JSON codec."""

    name = "json"

    def serialize(self, value: Any) -> str:
        return json.dumps(value)

    def deserialize(self, data: str | bytes) -> Any:
        return json.loads(data)


class MsgpackSerializer(Serializer):
    """MessagePack codec with datetime support."""

    name = "msgpack"

    def __init__(self) -> None:
        import msgpack

        self._msgpack = msgpack

    def _default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return self._msgpack.ExtType(_DATETIME_EXT, obj.isoformat().encode())
        raise TypeError(f"Cannot serialize {type(obj).__name__}")

    def _ext_hook(self, code: int, data: bytes) -> Any:
        if code == _DATETIME_EXT:
            return datetime.fromisoformat(data.decode())
        return self._msgpack.ExtType(code, data)

    def serialize(self, value: Any) -> bytes:
        return self._msgpack.packb(value, default=self._default, use_bin_type=True)

    def deserialize(self, data: str | bytes) -> Any:
        return self._msgpack.unpackb(data, ext_hook=self._ext_hook, raw=False)


SERIALIZERS: dict[str, type[Serializer]] = {
    JsonSerializer.name: JsonSerializer,
    MsgpackSerializer.name: MsgpackSerializer,
}
