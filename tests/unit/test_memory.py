"""Tests for the in-process fallback store."""

from datetime import timedelta

import pytest

from bucketcache.memory import MemoryCache


class TestMemoryCache:
    """Test MemoryCache."""

    def test_set_get_remove(self, memory):
        """Basic operations."""
        memory.set("k", b"v")
        assert memory.get("k") == b"v"
        memory.remove("k")
        assert memory.get("k") is None

    def test_remove_missing_is_noop(self, memory):
        """Removing an unknown key does nothing."""
        memory.remove("missing")
        memory.remove("missing")
        assert len(memory) == 0

    def test_no_ttl_lives_on(self, memory, clock):
        """Items without TTL never expire on their own."""
        memory.set("k", b"v")
        clock.advance(days=365)
        assert memory.get("k") == b"v"

    def test_absolute_expiration(self, memory, clock):
        """Items vanish at their absolute expiration."""
        memory.set("k", b"v", absolute_expiration=clock() + timedelta(seconds=10))
        clock.advance(seconds=9)
        assert memory.get("k") == b"v"
        clock.advance(seconds=1)
        assert memory.get("k") is None
        assert len(memory) == 0

    def test_sliding_expiration_renewed_by_reads(self, memory, clock):
        """Each read restarts the sliding window."""
        memory.set("k", b"v", sliding_expiration=timedelta(seconds=5))
        for _ in range(3):
            clock.advance(seconds=4)
            assert memory.get("k") == b"v"
        clock.advance(seconds=5)
        assert memory.get("k") is None

    def test_lru_eviction(self, clock):
        """The least recently used item is evicted first."""
        memory = MemoryCache(max_size=2, clock=clock)
        memory.set("a", b"1")
        memory.set("b", b"2")
        assert memory.get("a") == b"1"
        memory.set("c", b"3")
        assert memory.get("b") is None
        assert memory.get("a") == b"1"
        assert memory.get("c") == b"3"

    def test_overwrite_replaces_ttl(self, memory, clock):
        """A second set replaces value and expiration."""
        memory.set("k", b"old", absolute_expiration=clock() + timedelta(seconds=1))
        memory.set("k", b"new")
        clock.advance(seconds=2)
        assert memory.get("k") == b"new"

    def test_clear(self, memory):
        """Clear drops everything."""
        memory.set("a", b"1")
        memory.set("b", b"2")
        memory.clear()
        assert len(memory) == 0

    def test_invalid_max_size(self):
        """max_size must be positive."""
        with pytest.raises(ValueError):
            MemoryCache(max_size=0)

    def test_huge_sliding_window(self, memory, clock):
        """Sliding windows past the calendar range keep the item alive."""
        memory.set("k", b"v", sliding_expiration=timedelta(days=999_999_999))
        clock.advance(days=365)
        assert memory.get("k") == b"v"
