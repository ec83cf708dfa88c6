"""tagcache - Tag-aware async caching over interchangeable backends."""

# Facade and factory
from tagcache.cache import Cache, create_cache

# Drivers (async only)
from tagcache.drivers import (
    Driver,
    MemcachedDriver,
    MemoryDriver,
    RedisDriver,
)

# Duration parsing
from tagcache.duration import parse_duration

# Errors
from tagcache.errors import (
    CacheError,
    ConfigurationError,
    DriverDisposedError,
    InvalidOperandError,
)

# Serializers
from tagcache.serializers import JsonSerializer, MsgpackSerializer, Serializer
from tagcache.tagset import TagSet

# Core types
from tagcache.types import Duration, Entry

__version__ = "0.1.0"

__all__ = [
    "Cache",
    "CacheError",
    "ConfigurationError",
    "Driver",
    "DriverDisposedError",
    "Duration",
    "Entry",
    "InvalidOperandError",
    "JsonSerializer",
    "MemcachedDriver",
    "MemoryDriver",
    "MsgpackSerializer",
    "RedisDriver",
    "Serializer",
    "TagSet",
    "create_cache",
    "parse_duration",
]
