"""Storage drivers for tagcache (async only)."""

from tagcache.drivers.base import Driver
from tagcache.drivers.memcached import MemcachedDriver
from tagcache.drivers.memory import MemoryDriver
from tagcache.drivers.redis import RedisDriver

__all__ = [
    "Driver",
    "MemcachedDriver",
    "MemoryDriver",
    "RedisDriver",
]
