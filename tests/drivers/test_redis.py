"""Integration tests for Redis driver using testcontainers."""

import pytest

# Skip all tests if redis or testcontainers are not installed
pytest.importorskip("redis")
pytest.importorskip("testcontainers")

import redis.asyncio
from testcontainers.redis import RedisContainer

from tagcache import InvalidOperandError, JsonSerializer, RedisDriver, TagSet


@pytest.fixture(scope="module")
def redis_container():
    """Start a Redis container for the test module."""
    with RedisContainer() as container:
        yield container


@pytest.fixture
def redis_client(redis_container):
    """Create an async Redis client."""
    return redis.asyncio.Redis(
        host=redis_container.get_container_host_ip(),
        port=redis_container.get_exposed_port(6379),
        decode_responses=False,
    )


@pytest.fixture
async def redis_driver(redis_client):
    """Create a RedisDriver on an empty server."""
    driver = RedisDriver(redis_client, serializer=JsonSerializer())
    await driver.flush()
    yield driver
    await driver.dispose()


class TestRedisDriver:
    """Integration tests for untagged RedisDriver operations."""

    async def test_get_nonexistent_returns_none(
        self, redis_driver: RedisDriver
    ) -> None:
        """Test that getting a nonexistent key returns None."""
        assert await redis_driver.get("nonexistent") is None
        assert await redis_driver.has("nonexistent") is False

    async def test_put_and_get(self, redis_driver: RedisDriver) -> None:
        """Test that a stored value reads back equal."""
        await redis_driver.put("key1", {"id": "123", "name": "Test"}, 60)
        assert await redis_driver.get("key1") == {"id": "123", "name": "Test"}
        assert await redis_driver.has("key1") is True
        assert 0 < await redis_driver.client.ttl("key1") <= 60

    async def test_forever_has_no_ttl(self, redis_driver: RedisDriver) -> None:
        """Test that forever stores without expiration."""
        await redis_driver.forever("key1", "v")
        assert await redis_driver.client.ttl("key1") == -1

    async def test_put_many_and_get_many(self, redis_driver: RedisDriver) -> None:
        """Test batched writes and ordered batched reads."""
        await redis_driver.put_many([("a", 1), ("c", 3)], 60)
        assert await redis_driver.get_many(["c", "b", "a"]) == [3, None, 1]
        assert await redis_driver.get_many([]) == []

    async def test_forget(self, redis_driver: RedisDriver) -> None:
        """Test deleting a value."""
        await redis_driver.put("key1", "v", 60)
        await redis_driver.forget("key1")
        assert await redis_driver.get("key1") is None

    async def test_flush(self, redis_driver: RedisDriver) -> None:
        """Test that an untagged flush empties the server."""
        await redis_driver.put("key1", "v", 60)
        await redis_driver.put("key2", "v", 60, TagSet("users"))
        await redis_driver.flush()
        assert await redis_driver.client.dbsize() == 0

    async def test_ttl_expiration(self, redis_driver: RedisDriver) -> None:
        """Test that entries expire based on TTL."""
        import asyncio

        await redis_driver.put("expiring_key", "v", 1)
        assert await redis_driver.get("expiring_key") == "v"
        await asyncio.sleep(1.5)
        assert await redis_driver.get("expiring_key") is None


class TestRedisTags:
    """Integration tests for tag-scoped RedisDriver operations."""

    async def test_tagged_put_adds_to_set(self, redis_driver: RedisDriver) -> None:
        """Test that tag indexes are native sets of references."""
        both = TagSet("users", "admins")
        await redis_driver.put("user:1", {"name": "a"}, 60, both)
        ref = both.ref("user:1").encode()
        assert await redis_driver.client.smembers("tags:users") == {ref}
        assert await redis_driver.client.smembers("tags:admins") == {ref}
        assert await redis_driver.get("user:1", both) == {"name": "a"}
        assert await redis_driver.has("user:1") is False

    async def test_forget_removes_reference(self, redis_driver: RedisDriver) -> None:
        """Test that forget removes the reference and the value together."""
        users = TagSet("users")
        await redis_driver.put("user:1", "a", 60, users)
        await redis_driver.put("user:2", "b", 60, users)
        await redis_driver.forget("user:1", users)
        assert await redis_driver.client.smembers("tags:users") == {
            users.ref("user:2").encode()
        }
        assert await redis_driver.has("user:1", users) is False

    async def test_flush_by_tag(self, redis_driver: RedisDriver) -> None:
        """Test that the flush script removes references and indexes only."""
        users, posts = TagSet("users"), TagSet("posts")
        await redis_driver.put("user:1", {"name": "a"}, 60, users)
        await redis_driver.put("post:1", "p", 60, posts)
        await redis_driver.put("plain", "x", 60)

        await redis_driver.flush(posts)
        assert await redis_driver.get("user:1", users) == {"name": "a"}

        await redis_driver.flush(users)
        assert await redis_driver.get("user:1", users) is None
        assert await redis_driver.client.exists("tags:users") == 0
        assert await redis_driver.get("plain") == "x"

    async def test_flush_with_namespace(self, redis_client) -> None:
        """Test that the script prefixes references with the namespace."""
        driver = RedisDriver(redis_client, namespace="app", serializer=JsonSerializer())
        users = TagSet("users")
        await driver.put("user:1", "a", 60, users)
        assert await redis_client.exists(f"app:{users.ref('user:1')}") == 1
        assert await redis_client.exists("app:tags:users") == 1

        await driver.flush(users)
        assert await redis_client.exists(f"app:{users.ref('user:1')}") == 0
        assert await redis_client.exists("app:tags:users") == 0
        await driver.dispose()

    async def test_scenario(self, redis_driver: RedisDriver) -> None:
        """Test put, get, flush and get under a tag."""
        users = TagSet("users")
        await redis_driver.put("user:1", {"name": "a"}, 60, users)
        assert await redis_driver.get("user:1", users) == {"name": "a"}
        await redis_driver.flush(users)
        assert await redis_driver.get("user:1", users) is None


class TestRedisCounters:
    """Integration tests for increment and decrement."""

    async def test_increment_absent(self, redis_driver: RedisDriver) -> None:
        """Test that an absent key counts from zero."""
        assert await redis_driver.increment("n", 5) == 5
        assert await redis_driver.decrement("n", 2) == 3

    async def test_increment_clears_ttl(self, redis_driver: RedisDriver) -> None:
        """Test that the written counter does not expire."""
        await redis_driver.put("n", 1, 60)
        await redis_driver.increment("n")
        assert await redis_driver.client.ttl("n") == -1

    async def test_non_numeric(self, redis_driver: RedisDriver) -> None:
        """Test that a non-numeric value raises InvalidOperandError."""
        await redis_driver.put("name", "bob", 60)
        with pytest.raises(InvalidOperandError):
            await redis_driver.increment("name")
