"""Tests for TagSet and reference keys."""

from tagcache import TagSet
from tagcache.tagset import tag_key

USERS_HASH = "da052dde179a43f4040e50dd3520caead27a3a27"


class TestTagKey:
    """Tests for tag index keys."""

    def test_prefix(self) -> None:
        """Test that index keys are the name prefixed with tags:."""
        assert tag_key("users") == "tags:users"

    def test_keys_follow_names(self) -> None:
        """Test that a TagSet exposes one index key per name, in order."""
        tags = TagSet("users", "admins")
        assert tags.keys == ("tags:users", "tags:admins")


class TestReference:
    """Tests for reference key derivation."""

    def test_single_tag_digest(self) -> None:
        """Test the digest of a single tag is sha1 of its index key."""
        tags = TagSet("users")
        assert tags.namespace == "tags:users"
        assert tags.hash == USERS_HASH
        assert tags.ref("user:1") == f"{USERS_HASH}:user:1"

    def test_multi_tag_digest(self) -> None:
        """Test that index keys are joined with | before hashing."""
        tags = TagSet("users", "admins")
        assert tags.namespace == "tags:users|tags:admins"
        assert tags.hash == "253fb9750b83012879eb66e094ed12704d1b456b"

    def test_order_matters(self) -> None:
        """Test that reordering names changes the digest."""
        forward = TagSet("users", "admins")
        backward = TagSet("admins", "users")
        assert backward.hash == "a8fc699fc94a41164c4081e61de2aa34d3d4ac14"
        assert forward.ref("k") != backward.ref("k")
        assert forward != backward

    def test_duplicates_are_kept(self) -> None:
        """Test that duplicate names are not removed."""
        tags = TagSet("users", "users")
        assert tags.names == ("users", "users")
        assert tags.hash == "9520b9a320d162d052a36767ea01ab5b59320cbd"
        assert tags.hash != TagSet("users").hash

    def test_deterministic(self) -> None:
        """Test that equal name sequences are interchangeable."""
        first = TagSet("users", "admins")
        second = TagSet("users", "admins")
        assert first == second
        assert hash(first) == hash(second)
        assert first.ref("a") == second.ref("a")


class TestCoercion:
    """Tests for TagSet.of."""

    def test_from_string(self) -> None:
        """Test that a single string becomes a one-name set."""
        assert TagSet.of("users") == TagSet("users")

    def test_from_list(self) -> None:
        """Test that a list keeps its order."""
        assert TagSet.of(["users", "admins"]).names == ("users", "admins")

    def test_tagset_passthrough(self) -> None:
        """Test that a TagSet is returned unchanged."""
        tags = TagSet("users")
        assert TagSet.of(tags) is tags

    def test_repr(self) -> None:
        """Test the repr lists the names."""
        assert repr(TagSet("a", "b")) == "TagSet('a', 'b')"
