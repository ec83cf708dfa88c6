"""Exception types raised by tagcache.

Backend transport errors (``redis.exceptions.RedisError``,
``pymemcache.exceptions.MemcacheError``, socket errors) are not wrapped;
they reach the caller unchanged.
"""


class CacheError(Exception):
    """Base class for tagcache errors."""


class ConfigurationError(CacheError, ValueError):
    """Invalid driver or serializer selection."""


class InvalidOperandError(CacheError, TypeError):
    """Increment or decrement against a value that is not a number."""


class DriverDisposedError(CacheError, RuntimeError):
    """Operation attempted on a driver after dispose()."""
