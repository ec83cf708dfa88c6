"""Cache facade - default TTLs, fallbacks and tag scoping over a Driver.

Provides:
- Cache: convenience API (get/remember/pull/add/...) over one Driver
- Cache.tags(*names): a facade whose operations are scoped to a TagSet
- create_cache(): build a Cache from driver and serializer names
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any

from tagcache.drivers.base import Driver, Number, to_entries
from tagcache.drivers.memcached import MemcachedDriver
from tagcache.drivers.memory import MemoryDriver
from tagcache.drivers.redis import RedisDriver
from tagcache.duration import parse_duration
from tagcache.errors import ConfigurationError
from tagcache.serializers import SERIALIZERS, Serializer
from tagcache.tagset import TagSet
from tagcache.types import Duration, EntryLike

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600


async def _resolve(value: Any) -> Any:
    """Call value if callable and await the result if awaitable."""
    if callable(value):
        value = value()
    if inspect.isawaitable(value):
        value = await value
    return value


class Cache:
    """User-facing cache API over a Driver."""

    def __init__(
        self,
        driver: Driver,
        *,
        ttl: Duration = DEFAULT_TTL,
        tags: TagSet | str | Iterable[str] | None = None,
    ) -> None:
        if not isinstance(driver, Driver):
            raise ConfigurationError(f"Invalid driver: {driver!r}")
        self._driver = driver
        self._ttl = parse_duration(ttl) or DEFAULT_TTL
        self._tagset = TagSet.of(tags) if tags is not None else None

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def tagset(self) -> TagSet | None:
        return self._tagset

    def _debug(self, method: str, key: str | None = None, info: Any = None) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        message = f"[{','.join(self._tagset.names)}]" if self._tagset else ""
        message += method
        if key:
            message += f"({key})"
        if info is not None:
            message += f": {info}"
        logger.debug(message)

    def _ttl_or_default(self, ttl: Duration | None) -> int:
        return parse_duration(ttl) if ttl else self._ttl

    async def get(self, key: str, fallback: Any = None) -> Any:
        """Retrieve an item, or the fallback when the stored value is falsy.

        A stored ``0``, ``""``, ``False`` or empty container is treated the
        same as a missing key. A callable fallback is called (and awaited
        when it returns an awaitable).
        """
        self._debug("get", key)
        value = await self._driver.get(key, self._tagset)
        if not value:
            self._debug("get", key, "fallback")
            return await _resolve(fallback)
        return value

    async def has(self, key: str) -> bool:
        self._debug("has", key)
        return await self._driver.has(key, self._tagset)

    async def increment(self, key: str, amount: Number = 1) -> Number:
        self._debug("increment", key, amount)
        return await self._driver.increment(key, amount or 1, self._tagset)

    async def decrement(self, key: str, amount: Number = 1) -> Number:
        self._debug("decrement", key, amount)
        return await self._driver.decrement(key, amount or 1, self._tagset)

    async def remember(
        self,
        key: str,
        producer: Callable[[], Any],
        ttl: Duration | None = None,
    ) -> Any:
        """Return the cached item, or produce, store and return it.

        Results of None are returned but not stored.
        """
        self._debug("remember", key)
        value = await self._driver.get(key, self._tagset)
        if value:
            return value

        self._debug("remember", key, "callback")
        result = await _resolve(producer)
        if result is not None:
            await self._driver.put(
                key, result, self._ttl_or_default(ttl), self._tagset
            )
        return result

    async def pull(self, key: str) -> Any:
        """Retrieve an item and delete it."""
        self._debug("pull", key)
        value = await self._driver.get(key, self._tagset)
        await self._driver.forget(key, self._tagset)
        return value

    async def put(self, key: str, value: Any, ttl: Duration | None = None) -> None:
        self._debug("put", key)
        await self._driver.put(key, value, self._ttl_or_default(ttl), self._tagset)

    async def put_many(
        self, entries: Iterable[EntryLike], ttl: Duration | None = None
    ) -> None:
        items = to_entries(entries)
        self._debug("put", ",".join(item.key for item in items))
        await self._driver.put_many(items, self._ttl_or_default(ttl), self._tagset)

    async def add(self, key: str, value: Any, ttl: Duration | None = None) -> bool:
        """Store an item only if it does not exist. Returns True if stored."""
        self._debug("add", key)
        if await self._driver.has(key, self._tagset):
            self._debug("add", key, "exists")
            return False
        await self._driver.put(key, value, self._ttl_or_default(ttl), self._tagset)
        return True

    async def forever(self, key: str, value: Any) -> None:
        """Store an item that must be removed with forget()."""
        self._debug("forever", key)
        await self._driver.forever(key, value, self._tagset)

    async def forget(self, key: str) -> None:
        self._debug("forget", key)
        await self._driver.forget(key, self._tagset)

    async def flush(self) -> None:
        """Flush items under this facade's tags, or the entire store if untagged."""
        self._debug("flush")
        await self._driver.flush(self._tagset)

    def tags(self, *names: str) -> Cache:
        """Return a facade whose operations are scoped to the given tags."""
        return Cache(self._driver, ttl=self._ttl, tags=TagSet(*names))

    async def dispose(self) -> None:
        """Dispose the driver's connections. Shared with every tags() facade."""
        await self._driver.dispose()


def _create_serializer(serializer: Serializer | str | None) -> Serializer:
    if serializer is None:
        serializer = "json"
    if isinstance(serializer, Serializer):
        return serializer
    if isinstance(serializer, str):
        try:
            return SERIALIZERS[serializer]()
        except KeyError:
            raise ConfigurationError(f"Unknown serializer: {serializer!r}") from None
    raise ConfigurationError("A valid serializer must be provided")


def _create_driver(
    driver: str,
    *,
    namespace: str | None,
    serializer: Serializer,
    options: dict[str, Any],
) -> Driver:
    match driver:
        case "memory" | ":memory:":
            return MemoryDriver(namespace=namespace, serializer=serializer, **options)
        case "redis":
            import redis.asyncio

            return RedisDriver(
                redis.asyncio.Redis(**options),
                namespace=namespace,
                serializer=serializer,
            )
        case "memcached":
            from pymemcache.client.base import PooledClient

            options = {"server": ("localhost", 11211), **options}
            return MemcachedDriver(
                PooledClient(**options),
                namespace=namespace,
                serializer=serializer,
            )
        case _:
            raise ConfigurationError(f"Unknown driver: {driver!r}")


def create_cache(
    *,
    driver: Driver | str,
    serializer: Serializer | str | None = None,
    ttl: Duration = DEFAULT_TTL,
    namespace: str | None = None,
    driver_options: dict[str, Any] | None = None,
) -> Cache:
    """Create a cache facade.

    A Driver instance keeps its own serializer and namespace, so
    serializer, namespace and driver_options only apply to driver names.

    Args:
        driver: Driver instance, or "memory", "redis" or "memcached"
        serializer: Serializer instance, or "json" (default) or "msgpack"
        ttl: Default time to live for put/add/remember
        namespace: Prefix for every storage key
        driver_options: Keyword arguments for the backend client
            (redis.asyncio.Redis, pymemcache PooledClient) or MemoryDriver

    Returns:
        Cache instance
    """
    try:
        parse_duration(ttl)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(str(exc)) from exc

    if isinstance(driver, Driver):
        if serializer is not None or namespace is not None or driver_options:
            raise ConfigurationError(
                "serializer, namespace and driver_options only apply to driver names"
            )
        return Cache(driver, ttl=ttl)
    if not isinstance(driver, str):
        raise ConfigurationError("A valid driver must be provided")

    instance = _create_driver(
        driver,
        namespace=namespace,
        serializer=_create_serializer(serializer),
        options=dict(driver_options or {}),
    )
    return Cache(instance, ttl=ttl)


__all__ = ["DEFAULT_TTL", "Cache", "create_cache"]
