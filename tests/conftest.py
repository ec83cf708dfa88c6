"""Shared pytest fixtures."""

import pytest
from pymemcache.test.utils import MockMemcacheClient

from tagcache import Cache, JsonSerializer, MemcachedDriver, MemoryDriver, TagSet


@pytest.fixture
def memory_driver() -> MemoryDriver:
    """Create a MemoryDriver whose sweep is driven manually with tick()."""
    return MemoryDriver(serializer=JsonSerializer(), interval=None)


@pytest.fixture
def memcached_client() -> MockMemcacheClient:
    """Create an in-process stand-in for a memcached server."""
    return MockMemcacheClient()


@pytest.fixture
def memcached_driver(memcached_client: MockMemcacheClient) -> MemcachedDriver:
    """Create a MemcachedDriver over the mock client."""
    return MemcachedDriver(memcached_client, serializer=JsonSerializer())


@pytest.fixture
def cache(memory_driver: MemoryDriver) -> Cache:
    """Create a Cache facade over a memory driver."""
    return Cache(memory_driver, ttl="1m")


@pytest.fixture
def users() -> TagSet:
    """Create a single-tag TagSet."""
    return TagSet("users")


@pytest.fixture
def posts() -> TagSet:
    """Create a TagSet disjoint from users."""
    return TagSet("posts")
