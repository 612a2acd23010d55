"""Tests for nosy.pipeline - end-to-end runs with mocked network and tools."""

from __future__ import annotations

import io
import json
import subprocess
import urllib.error
from email.message import Message
from unittest.mock import MagicMock, patch

import httpx
import pytest

from nosy.errors import (
    CorruptContentError,
    MissingKeyError,
    ModelMissingError,
    NetworkError,
    NosyError,
    RateLimitedError,
    TemplateError,
    ToolFailedError,
)
from nosy.fetcher import FetchMode
from nosy.filetype import ExtractorKind
from nosy.pipeline import Pipeline, PipelineOptions, scoped_workdir, stage
from nosy.retry import backoff_delay, call_with_retry


def _url_response(body: bytes, content_type: str | None = None, url: str = "https://example.com/a"):
    msg = Message()
    if content_type:
        msg["Content-Type"] = content_type
    resp = MagicMock()
    resp.read.return_value = body
    resp.status = 200
    resp.headers = msg
    resp.geturl.return_value = url
    resp.__enter__ = lambda s: s
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def _openai_stream(*chunks: str) -> bytes:
    lines = []
    for chunk in chunks:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": chunk}}]}))
        lines.append("")
    lines += ["data: [DONE]", ""]
    return ("\n".join(lines) + "\n").encode("utf-8")


class FakeProvider:
    """Mock transport replaying one response per request."""

    def __init__(self, *responses: tuple[int, bytes, dict]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body, headers = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, headers=headers, content=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


# ---------------------------------------------------------------------------
# Scoped resources
# ---------------------------------------------------------------------------

class TestScopedWorkdir:
    def test_created_and_removed(self, workdir):
        with scoped_workdir(workdir) as path:
            assert path.is_dir()
            assert path.parent == workdir
            assert path.name.startswith("nosy-")
            (path / "scratch.bin").write_bytes(b"x")
        assert not path.exists()

    def test_removed_on_interrupt(self, workdir):
        with pytest.raises(KeyboardInterrupt), scoped_workdir(workdir) as path:
            raise KeyboardInterrupt
        assert not path.exists()

    def test_parent_created(self, tmp_path):
        with scoped_workdir(tmp_path / "a" / "b") as path:
            assert path.is_dir()


class TestStage:
    def test_wraps_unexpected_errors(self):
        with pytest.raises(NosyError) as exc_info, stage("select"):
            raise ValueError("boom")
        assert exc_info.value.stage == "select"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_nosy_errors_keep_their_stage(self):
        with pytest.raises(NetworkError) as exc_info, stage("extract"):
            raise NetworkError("down")
        assert exc_info.value.stage == "fetch"


class TestRetry:
    def test_backoff_grows_and_honours_retry_after(self):
        assert 1.0 <= backoff_delay(0, base=1.0) <= 2.0
        assert 4.0 <= backoff_delay(2, base=1.0) <= 5.0
        assert backoff_delay(0, 10.0, base=1.0) >= 10.0

    def test_backoff_capped(self):
        assert backoff_delay(20, base=1.0, cap=30.0) <= 30.0

    def test_call_with_retry_recovers(self):
        calls = iter([NetworkError("a"), NetworkError("b"), "ok"])

        def flaky():
            value = next(calls)
            if isinstance(value, Exception):
                raise value
            return value

        sleeps: list[float] = []
        assert call_with_retry(flaky, retry_on=(NetworkError,), max_retries=3, sleep=sleeps.append) == "ok"
        assert len(sleeps) == 2

    def test_call_with_retry_gives_up(self):
        def broken():
            raise NetworkError("down")

        with pytest.raises(NetworkError):
            call_with_retry(broken, retry_on=(NetworkError,), max_retries=2, sleep=lambda _: None)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class TestExtract:
    def test_local_pdf_selected_by_extension(self, tmp_path, workdir, pdf_bytes):
        path = tmp_path / "report.pdf"
        path.write_bytes(pdf_bytes)
        result = Pipeline(PipelineOptions(workdir=workdir)).extract(str(path))
        assert result.kind is ExtractorKind.PDF
        assert "Hello World" in result.text
        assert result.char_count == len(result.text)
        assert result.source == str(path)
        assert list(workdir.iterdir()) == []

    def test_remote_html_selected_by_mime(self, workdir):
        resp = _url_response(b"<p>Hi</p>", "text/html; charset=utf-8")
        with patch("urllib.request.urlopen", return_value=resp):
            result = Pipeline(
                PipelineOptions(fetch_mode=FetchMode.GET, workdir=workdir),
            ).extract("https://example.com/a")
        assert result.kind is ExtractorKind.HTML
        assert result.text == "Hi"

    @pytest.mark.parametrize(("content_type", "kind"), [
        ("text/html; charset=iso-8859-1", ExtractorKind.HTML),
        ("text/plain; charset=iso-8859-1", ExtractorKind.PLAIN),
    ])
    def test_declared_charset_is_used(self, workdir, content_type, kind):
        body = "<p>Café crème</p>" if kind is ExtractorKind.HTML else "Café crème"
        resp = _url_response(body.encode("latin-1"), content_type)
        with patch("urllib.request.urlopen", return_value=resp):
            result = Pipeline(PipelineOptions(workdir=workdir)).extract("https://example.com/a")
        assert result.kind is kind
        assert result.text == "Café crème"

    def test_unknown_type_falls_back_to_plain(self, tmp_path, workdir):
        path = tmp_path / "notes.weird"
        path.write_text("raw notes\n", encoding="utf-8")
        result = Pipeline(PipelineOptions(workdir=workdir)).extract(str(path))
        assert result.kind is ExtractorKind.PLAIN
        assert result.text == "raw notes\n"

    def test_file_url(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("hello", encoding="utf-8")
        assert Pipeline(PipelineOptions(workdir=workdir)).extract(f"file://{path}").text == "hello"

    def test_forced_pdf_on_garbage_is_corrupt(self, tmp_path, workdir):
        path = tmp_path / "garbage.txt"
        path.write_bytes(b"\x00\x13garbage bytes\xff")
        with pytest.raises(CorruptContentError) as exc_info:
            Pipeline(PipelineOptions(ext_kind=ExtractorKind.PDF, workdir=workdir)).extract(str(path))
        assert exc_info.value.stage == "extract"

    def test_network_errors_are_retried(self, workdir):
        resp = _url_response(b"plain body", "text/plain")
        sleeps: list[float] = []
        with patch(
            "urllib.request.urlopen",
            side_effect=[urllib.error.URLError("reset"), resp],
        ) as mock_urlopen:
            result = Pipeline(
                PipelineOptions(workdir=workdir, max_retries=2), sleep=sleeps.append,
            ).extract("https://example.com/a")
        assert result.text == "plain body"
        assert mock_urlopen.call_count == 2
        assert len(sleeps) == 1

    def test_http_status_errors_are_not_retried(self, workdir):
        err = urllib.error.HTTPError("https://example.com/a", 404, "Not Found", {}, None)
        with patch("urllib.request.urlopen", side_effect=err) as mock_urlopen, \
                pytest.raises(NosyError) as exc_info:
            Pipeline(PipelineOptions(workdir=workdir), sleep=lambda _: None).extract(
                "https://example.com/a",
            )
        assert exc_info.value.stage == "fetch"
        assert mock_urlopen.call_count == 1

    def test_workdir_removed_after_tool_failure(self, tmp_path, workdir):
        path = tmp_path / "doc.docx"
        path.write_bytes(b"PK\x03\x04")
        failed = subprocess.CompletedProcess([], 1, stdout=b"", stderr=b"bad zip")
        with patch("nosy.extractors.pandoc.shutil.which", return_value="/usr/bin/pandoc"), \
                patch("nosy.extractors.pandoc.subprocess.run", return_value=failed), \
                pytest.raises(ToolFailedError):
            Pipeline(PipelineOptions(workdir=workdir)).extract(str(path))
        assert list(workdir.iterdir()) == []

    def test_whisper_without_model(self, tmp_path, workdir, monkeypatch):
        monkeypatch.delenv("WHISPER_MODEL_PATH", raising=False)
        path = tmp_path / "talk.mp3"
        path.write_bytes(b"ID3")
        with pytest.raises(ModelMissingError):
            Pipeline(PipelineOptions(workdir=workdir)).extract(str(path))

    def test_unexpected_error_tagged_with_stage(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        with patch("nosy.pipeline.select_kind", side_effect=KeyError("kind")), \
                pytest.raises(NosyError) as exc_info:
            Pipeline(PipelineOptions(workdir=workdir)).extract(str(path))
        assert exc_info.value.stage == "select"

    def test_progress_messages(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        messages: list[str] = []
        Pipeline(PipelineOptions(workdir=workdir, progress=messages.append)).extract(str(path))
        assert any(m.startswith("Fetching") for m in messages)
        assert any("plain extractor" in m for m in messages)


# ---------------------------------------------------------------------------
# Summarization
# ---------------------------------------------------------------------------

class TestSummarize:
    def _options(self, workdir, provider: FakeProvider, **kwargs) -> PipelineOptions:
        return PipelineOptions(
            model="gpt-4o",
            workdir=workdir,
            environ={"OPENAI_API_KEY": "sk-test"},
            http_client=provider.client(),
            **kwargs,
        )

    def test_streams_summary_into_sink(self, tmp_path, workdir):
        path = tmp_path / "article.txt"
        path.write_text("Tide pools are small worlds.", encoding="utf-8")
        provider = FakeProvider((200, _openai_stream("Short ", "summary."), {}))
        sink = io.StringIO()
        summary = Pipeline(self._options(workdir, provider, language="French")).summarize(str(path), sink)

        assert summary == "Short summary."
        assert sink.getvalue() == "Short summary."
        body = json.loads(provider.requests[0].content)
        assert body["model"] == "gpt-4o"
        system, user = body["messages"]
        assert "French" in system["content"]
        assert "Tide pools are small worlds." in user["content"]
        assert list(workdir.iterdir()) == []

    def test_namespace_is_stripped_from_request(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        provider = FakeProvider((200, _openai_stream("ok"), {}))
        opts = PipelineOptions(
            model="together::meta-llama/Llama-3-70b",
            workdir=workdir,
            environ={"TOGETHER_API_KEY": "k"},
            http_client=provider.client(),
        )
        Pipeline(opts).summarize(str(path), io.StringIO())
        req = provider.requests[0]
        assert str(req.url) == "https://api.together.xyz/v1/chat/completions"
        assert json.loads(req.content)["model"] == "meta-llama/Llama-3-70b"

    def test_missing_key_before_any_io(self, tmp_path, workdir):
        provider = FakeProvider((200, _openai_stream("never"), {}))
        opts = PipelineOptions(
            model="gpt-4o", workdir=workdir, environ={}, http_client=provider.client(),
        )
        with patch("nosy.pipeline.fetch") as mock_fetch, \
                patch("urllib.request.urlopen") as mock_urlopen, \
                pytest.raises(MissingKeyError) as exc_info:
            Pipeline(opts).summarize("https://example.com/a", io.StringIO())
        assert exc_info.value.env_var == "OPENAI_API_KEY"
        mock_fetch.assert_not_called()
        mock_urlopen.assert_not_called()
        assert provider.requests == []

    def test_extraction_failure_skips_provider(self, tmp_path, workdir):
        path = tmp_path / "garbage.txt"
        path.write_bytes(b"\x00garbage")
        provider = FakeProvider((200, _openai_stream("never"), {}))
        with pytest.raises(CorruptContentError):
            Pipeline(self._options(workdir, provider, ext_kind=ExtractorKind.PDF)).summarize(
                str(path), io.StringIO(),
            )
        assert provider.requests == []

    def test_rate_limit_retried_before_first_chunk(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        provider = FakeProvider(
            (429, b'{"error": {"message": "slow down"}}', {"Retry-After": "2"}),
            (200, _openai_stream("done"), {}),
        )
        sleeps: list[float] = []
        summary = Pipeline(self._options(workdir, provider), sleep=sleeps.append).summarize(
            str(path), io.StringIO(),
        )
        assert summary == "done"
        assert len(provider.requests) == 2
        assert len(sleeps) == 1
        assert sleeps[0] >= 2.0

    def test_rate_limit_gives_up(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        provider = FakeProvider((429, b"{}", {}))
        with pytest.raises(RateLimitedError):
            Pipeline(self._options(workdir, provider, max_retries=1), sleep=lambda _: None).summarize(
                str(path), io.StringIO(),
            )
        assert len(provider.requests) == 2

    def test_rate_limit_after_output_is_not_retried(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        body = (
            b'data: {"choices": [{"delta": {"content": "partial"}}]}\n\n'
            b'data: {"error": {"type": "rate_limit_exceeded", "message": "slow"}}\n\n'
        )
        provider = FakeProvider((200, body, {}))
        sink = io.StringIO()
        with pytest.raises(RateLimitedError):
            Pipeline(self._options(workdir, provider), sleep=lambda _: None).summarize(str(path), sink)
        assert sink.getvalue() == "partial"
        assert len(provider.requests) == 1

    def test_unreadable_user_template(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        template = tmp_path / "user.hbs"
        template.write_bytes(b"\xff\xfe{{content}}")
        provider = FakeProvider((200, _openai_stream("never"), {}))
        with pytest.raises(TemplateError) as exc_info:
            Pipeline(self._options(workdir, provider, user_template=template)).summarize(
                str(path), io.StringIO(),
            )
        assert exc_info.value.stage == "render"
        assert provider.requests == []

    def test_unknown_template_variable_renders_empty(self, tmp_path, workdir):
        path = tmp_path / "a.txt"
        path.write_text("body", encoding="utf-8")
        template = tmp_path / "user.hbs"
        template.write_text("{{content}}|{{tone}}|", encoding="utf-8")
        provider = FakeProvider((200, _openai_stream("ok"), {}))
        Pipeline(self._options(workdir, provider, user_template=template)).summarize(
            str(path), io.StringIO(),
        )
        sent = json.loads(provider.requests[0].content)
        assert sent["messages"][1]["content"] == "body||"
