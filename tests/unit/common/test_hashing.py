"""Tests for common.hashing module."""

from common.hashing import generate_item_id


class TestGenerateItemId:
    def test_deterministic_output(self) -> None:
        result1 = generate_item_id(1, "https://bbc.com/article")
        result2 = generate_item_id(1, "https://bbc.com/article")
        assert result1 == result2

    def test_returns_16_char_hex_string(self) -> None:
        result = generate_item_id(1, "https://bbc.com/article")
        assert len(result) == 16
        assert all(c in "0123456789abcdef" for c in result)

    def test_different_feed_produces_different_id(self) -> None:
        result1 = generate_item_id(1, "https://example.com/article")
        result2 = generate_item_id(2, "https://example.com/article")
        assert result1 != result2

    def test_int_and_str_feed_ids_agree(self) -> None:
        assert generate_item_id(3, "https://x.com/a") == generate_item_id("3", "https://x.com/a")
