"""Tests for extract_content.media_classifier module."""

import pytest

from extract_content.media_classifier import MediaCheck, determine_media_type, is_non_text_content


class TestIsNonTextContent:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://x/y.jpg", MediaCheck(skip=True, media_type="image")),
            ("https://youtube.com/watch?v=abc", MediaCheck(skip=True, media_type="video")),
            ("https://example.com/report.PDF", MediaCheck(skip=True, media_type="document")),
            ("https://open.spotify.com/episode/1", MediaCheck(skip=True, media_type="audio")),
            ("https://www.tiktok.com/@user/video/1", MediaCheck(skip=True, media_type="video")),
            ("https://example.com/article", MediaCheck(skip=False)),
        ],
    )
    def test_classification(self, url: str, expected: MediaCheck) -> None:
        assert is_non_text_content(url) == expected

    def test_domain_must_match_on_label_boundary(self) -> None:
        assert is_non_text_content("https://notyoutube.com/watch").skip is False


class TestDetermineMediaType:
    def test_short_text(self) -> None:
        assert determine_media_type("https://example.com/a", "tiny") == "short-text"

    def test_text(self) -> None:
        assert determine_media_type("https://example.com/a", "word " * 100) == "text"

    def test_media_url_wins_over_content(self) -> None:
        assert determine_media_type("https://example.com/a.mp3", "word " * 100) == "audio"

    def test_no_host_is_unknown(self) -> None:
        assert determine_media_type("not a url", "word " * 100) == "unknown"
