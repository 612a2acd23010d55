"""Tests for nosy.filetype - extractor selection."""

from __future__ import annotations

import logging

import pytest

from nosy.errors import SelectionError
from nosy.filetype import ExtractorKind, detect_kind, select_kind


class TestDetectKind:
    @pytest.mark.parametrize(("mime", "expected"), [
        ("text/html", ExtractorKind.HTML),
        ("application/xhtml+xml", ExtractorKind.HTML),
        ("application/pdf", ExtractorKind.PDF),
        ("text/plain", ExtractorKind.PLAIN),
        ("text/markdown", ExtractorKind.PLAIN),
        ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", ExtractorKind.PANDOC),
        ("application/epub+zip", ExtractorKind.PANDOC),
        ("audio/mpeg", ExtractorKind.WHISPER),
        ("video/mp4", ExtractorKind.WHISPER),
    ])
    def test_by_mime(self, mime, expected):
        assert detect_kind(mime, None) is expected

    @pytest.mark.parametrize(("ext", "expected"), [
        ("html", ExtractorKind.HTML),
        ("htm", ExtractorKind.HTML),
        ("pdf", ExtractorKind.PDF),
        ("txt", ExtractorKind.PLAIN),
        ("md", ExtractorKind.PLAIN),
        ("docx", ExtractorKind.PANDOC),
        ("odt", ExtractorKind.PANDOC),
        ("mp3", ExtractorKind.WHISPER),
        ("m4a", ExtractorKind.WHISPER),
    ])
    def test_by_extension(self, ext, expected):
        assert detect_kind(None, ext) is expected

    def test_mime_parameters_and_case_ignored(self):
        assert detect_kind("Text/HTML; charset=UTF-8", None) is ExtractorKind.HTML

    def test_extension_case_ignored(self):
        assert detect_kind(None, "PDF") is ExtractorKind.PDF

    def test_audio_and_video_families(self):
        assert detect_kind("audio/ogg", None) is ExtractorKind.WHISPER
        assert detect_kind("video/webm", None) is ExtractorKind.WHISPER

    def test_mime_wins_over_extension(self):
        assert detect_kind("application/pdf", "html") is ExtractorKind.PDF

    def test_unknown_mime_falls_back_to_extension(self):
        assert detect_kind("application/octet-stream", "pdf") is ExtractorKind.PDF

    def test_nothing_matches_raises(self):
        with pytest.raises(SelectionError):
            detect_kind("application/octet-stream", "bin")


class TestSelectKind:
    def test_unknown_falls_back_to_plain(self):
        assert select_kind("application/x-unknown", "xyz") is ExtractorKind.PLAIN

    def test_no_hints_falls_back_to_plain(self):
        assert select_kind(None, None) is ExtractorKind.PLAIN

    @pytest.mark.parametrize("forced", list(ExtractorKind))
    def test_forced_kind_always_wins(self, forced):
        assert select_kind("text/html", "html", forced) is forced

    def test_forced_mismatch_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="nosy.filetype"):
            select_kind(None, "txt", ExtractorKind.PDF)
        assert "differs from detected" in caplog.text

    def test_forced_match_does_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="nosy.filetype"):
            select_kind("application/pdf", None, ExtractorKind.PDF)
        assert caplog.text == ""

    def test_deterministic(self):
        results = {select_kind("text/html", "pdf") for _ in range(5)}
        assert results == {ExtractorKind.HTML}

    def test_kind_values_are_cli_choices(self):
        assert [k.value for k in ExtractorKind] == ["plain", "html", "pdf", "pandoc", "whisper"]
