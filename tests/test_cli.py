"""Tests for the nosy command line (python -m nosy)."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from nosy.__main__ import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_USAGE,
    _build_parser,
    _split_command,
    main,
)


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("Some notes worth reading.", encoding="utf-8")
    return path


class TestCommands:
    @pytest.mark.parametrize(("argv", "expected"), [
        (["file.txt"], ("summarize", ["file.txt"])),
        (["summarize", "file.txt"], ("summarize", ["file.txt"])),
        (["recap", "file.txt"], ("summarize", ["file.txt"])),
        (["extract", "file.txt"], ("extract", ["file.txt"])),
        (["ext", "file.txt", "-o", "x"], ("extract", ["file.txt", "-o", "x"])),
    ])
    def test_split_command(self, argv, expected):
        assert _split_command(argv) == expected

    def test_summarize_defaults(self):
        args = _build_parser("summarize").parse_args(["in.pdf"])
        assert args.model == "claude-sonnet-4-5-20250929"
        assert args.lang == "English"
        assert args.http_fetch_mode == "get"
        assert args.ext_kind is None
        assert args.out is None

    def test_extract_has_no_provider_flags(self):
        with pytest.raises(SystemExit):
            _build_parser("extract").parse_args(["in.pdf", "--model", "gpt-4o"])

    def test_invalid_choice_is_usage_error(self, text_file):
        assert main(["extract", str(text_file), "--ext-kind", "docx"]) == EXIT_USAGE


class TestExtractCommand:
    def test_prints_text(self, text_file, capsys):
        code = main(["extract", str(text_file), "--no-progress", "--log-level", "off"])
        assert code == EXIT_OK
        assert capsys.readouterr().out == "Some notes worth reading.\n"

    def test_writes_output_file(self, text_file, tmp_path):
        out = tmp_path / "nested" / "out.txt"
        code = main(["ext", str(text_file), "-o", str(out), "--no-progress", "--log-level", "off"])
        assert code == EXIT_OK
        assert out.read_text(encoding="utf-8") == "Some notes worth reading.\n"

    def test_existing_output_rejected(self, text_file, tmp_path):
        out = tmp_path / "out.txt"
        out.write_text("keep me", encoding="utf-8")
        code = main(["extract", str(text_file), "-o", str(out)])
        assert code == EXIT_USAGE
        assert out.read_text(encoding="utf-8") == "keep me"

    def test_missing_input_reports_stage(self, tmp_path, capsys):
        code = main(["extract", str(tmp_path / "nope.pdf"), "--no-progress", "--log-level", "off"])
        assert code == EXIT_FAILURE
        err = capsys.readouterr().err
        assert "error [fetch]" in err
        assert "no such file" in err

    def test_failed_run_leaves_no_output_file(self, tmp_path):
        out = tmp_path / "out.txt"
        code = main([
            "extract", str(tmp_path / "nope.pdf"), "-o", str(out), "--no-progress", "--log-level", "off",
        ])
        assert code == EXIT_FAILURE
        assert not out.exists()

    def test_workdir_is_cleaned(self, text_file, tmp_path):
        work = tmp_path / "work"
        code = main(["extract", str(text_file), "-w", str(work), "--no-progress", "--log-level", "off"])
        assert code == EXIT_OK
        assert list(work.iterdir()) == []

    def test_pandoc_checked_up_front(self, text_file):
        with patch("nosy.extractors.pandoc.shutil.which", return_value=None):
            assert main(["extract", str(text_file), "--ext-kind", "pandoc"]) == EXIT_USAGE

    def test_whisper_model_checked_up_front(self, text_file, monkeypatch):
        monkeypatch.delenv("WHISPER_MODEL_PATH", raising=False)
        with patch("nosy.pipeline.fetch") as mock_fetch:
            assert main(["extract", str(text_file), "--ext-kind", "whisper"]) == EXIT_USAGE
        mock_fetch.assert_not_called()


class TestSummarizeCommand:
    def test_missing_key(self, text_file, monkeypatch, capsys):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        code = main([str(text_file), "--model", "gpt-4o", "--log-level", "off"])
        assert code == EXIT_FAILURE
        assert "OPENAI_API_KEY" in capsys.readouterr().err

    def test_unknown_model(self, text_file, capsys):
        code = main(["recap", str(text_file), "--model", "mystery-model", "--log-level", "off"])
        assert code == EXIT_FAILURE
        assert "error [config]" in capsys.readouterr().err

    def test_missing_template_file(self, text_file, tmp_path):
        code = main([str(text_file), "--system-template", str(tmp_path / "none.hbs")])
        assert code == EXIT_USAGE
