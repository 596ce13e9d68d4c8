"""Tests for object name encoding."""

import re

import pytest

from bucketcache.keys import encode_key

ALLOWED = re.compile(r"^[A-Za-z0-9_.-]*$")


class TestEncodeKey:
    """Test cache key to object name mapping."""

    def test_known_value(self):
        """Padding and URL-unsafe characters are replaced."""
        # base64("a?") == "YT8=", base64("ab>") == "YWI+", base64("a?>") == "YT8+"
        assert encode_key("a?") == "YT8."
        assert encode_key("ab>") == "YWI-"
        assert encode_key("??>") == "Pz8-"
        assert encode_key("???") == "Pz8_"

    def test_deterministic(self):
        """Same key always maps to the same name."""
        assert encode_key("user:42") == encode_key("user:42")

    @pytest.mark.parametrize(
        "key",
        ["simple", "with space", "path/like/key", "emoji-\U0001f600", "ключ", "a+b=c", "?" * 50, "\x00"],
    )
    def test_only_allowed_characters(self, key):
        """Encoded names only use characters legal in object names."""
        assert ALLOWED.match(encode_key(key))

    def test_distinct_keys_distinct_names(self):
        """Different keys never collide."""
        keys = ["a", "b", "ab", "a b", "A", "a/", "a_", "a-", "a.", "\u00e9", "e\u0301", "", "?", "??", "???"]
        names = [encode_key(k) for k in keys]
        assert len(set(names)) == len(keys)

    def test_rejects_non_string(self):
        """Bytes keys are a programming error."""
        with pytest.raises(TypeError):
            encode_key(b"raw")  # type: ignore[arg-type]
