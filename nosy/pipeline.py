"""Orchestration of one run: resolve -> fetch -> select -> extract [-> summarize].

Quick usage::

    from nosy.pipeline import Pipeline, PipelineOptions

    result = Pipeline().extract("./report.pdf")
    print(result.text)

    opts = PipelineOptions(model="gpt-4o", language="German")
    summary = Pipeline(opts).summarize("https://example.com/post", sys.stdout)
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import tempfile
import time
import uuid
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import httpx

from nosy import settings
from nosy.errors import NetworkError, NosyError, RateLimitedError
from nosy.extractors import ProgressCallback, build_extractor
from nosy.fetcher import FetchedContent, FetchMode, fetch
from nosy.filetype import ExtractorKind, select_kind
from nosy.items import ExtractionResult, SummaryRequest
from nosy.providers import ModelSpec, ProviderAdapter, resolve_model, resolve_provider
from nosy.retry import backoff_delay, call_with_retry
from nosy.scheme import resolve
from nosy.templates import build_messages

logger = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    """Runtime options for a single run.

    Attributes:
        fetch_mode:      Strategy for remote URLs (plain GET or headless).
        ext_kind:        Force an extractor instead of detecting one.
        provider:        Explicit provider identity; inferred from *model*
                         when ``None``.
        model:           Model name, optionally ``provider::model``.
        language:        Target language of the summary.
        system_template: Path of a custom system message template.
        user_template:   Path of a custom user message template.
        workdir:         Parent of the per-run scratch directory (system temp
                         dir when ``None``).
        timeout:         Fetch timeout in seconds (per-mode default if ``None``).
        max_retries:     Retries for network failures and rate limits.
        max_tokens:      Completion bound for providers that require one.
        progress:        Callback receiving human-readable status messages.
        environ:         Environment used for API keys (``os.environ`` if
                         ``None``).
        http_client:     Shared :class:`httpx.Client` for provider requests.
    """

    fetch_mode: FetchMode = FetchMode.GET
    ext_kind: ExtractorKind | None = None
    provider: str | None = None
    model: str = settings.DEFAULT_MODEL
    language: str = settings.DEFAULT_LANGUAGE
    system_template: Path | None = None
    user_template: Path | None = None
    workdir: Path | None = None
    timeout: int | None = None
    max_retries: int = settings.MAX_RETRIES
    max_tokens: int = settings.MAX_TOKENS
    progress: ProgressCallback | None = None
    environ: Mapping[str, str] | None = None
    http_client: httpx.Client | None = None


@contextlib.contextmanager
def stage(name: str) -> Iterator[None]:
    """Tag unexpected exceptions escaping the block with the stage *name*."""
    try:
        yield
    except NosyError:
        raise
    except Exception as exc:
        raise NosyError(f"{name} failed: {exc}", stage=name) from exc


@contextlib.contextmanager
def scoped_workdir(parent: Path | None = None) -> Iterator[Path]:
    """Create ``nosy-<uuid>`` under *parent* and remove it on exit."""
    base = Path(parent) if parent is not None else Path(tempfile.gettempdir())
    try:
        base.mkdir(parents=True, exist_ok=True)
        path = base / f"{settings.WORKDIR_PREFIX}{uuid.uuid4().hex}"
        path.mkdir()
    except OSError as exc:
        raise NosyError(f"cannot create working directory in '{base}': {exc}") from exc
    logger.debug("working directory: %s", path)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


class Pipeline:
    def __init__(
        self,
        options: PipelineOptions | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.options = options or PipelineOptions()
        self._sleep = sleep

    def _report(self, message: str) -> None:
        logger.debug("%s", message)
        if self.options.progress is not None:
            self.options.progress(message)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def fetch(self, value: str) -> FetchedContent:
        opts = self.options
        with stage("resolve"):
            ref = resolve(value)
        self._report(f"Fetching {value}...")
        with stage("fetch"):
            return call_with_retry(
                lambda: fetch(ref, opts.fetch_mode, timeout=opts.timeout),
                retry_on=(NetworkError,),
                max_retries=opts.max_retries,
                label=f"fetch {value}",
                sleep=self._sleep,
            )

    def _extract(self, value: str, workdir: Path) -> ExtractionResult:
        content = self.fetch(value)
        with stage("select"):
            kind = select_kind(content.mime, content.extension, self.options.ext_kind)
        self._report(f"Extracting content with {kind.value} extractor...")
        with stage("extract"):
            extractor = build_extractor(kind, workdir, self.options.progress)
            text = extractor.extract(
                content.data,
                extension=content.extension,
                mime=content.mime,
                charset=content.charset,
            )
        logger.info("extracted %d characters from %s (%s)", len(text), value, kind.value)
        return ExtractionResult(text=text, kind=kind, source=value)

    def extract(self, value: str) -> ExtractionResult:
        """Return the plain text behind *value* (URL or local path)."""
        with scoped_workdir(self.options.workdir) as workdir:
            return self._extract(value, workdir)

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    def resolve_provider(self) -> tuple[ModelSpec, ProviderAdapter]:
        opts = self.options
        with stage("provider"):
            model = resolve_model(opts.provider, opts.model)
            adapter = resolve_provider(
                model.provider,
                model.name,
                environ=opts.environ,
                client=opts.http_client,
                max_tokens=opts.max_tokens,
            )
        return model, adapter

    def summarize(self, value: str, sink: TextIO) -> str:
        """Extract *value*, summarize it and stream the summary into *sink*.

        The provider and its API key are resolved before anything is
        fetched.  Returns the complete summary text.
        """
        opts = self.options
        model, adapter = self.resolve_provider()
        with scoped_workdir(opts.workdir) as workdir:
            result = self._extract(value, workdir)

        with stage("render"):
            system, user = build_messages(
                result.text,
                language=opts.language,
                system_template=opts.system_template,
                user_template=opts.user_template,
            )
        request = SummaryRequest(
            system=system,
            user=user,
            model=model.name,
            provider=model.provider.value,
            language=opts.language,
        )
        self._report(f"Summarizing with {request.provider}/{request.model}...")
        return self.stream(adapter, request, sink)

    def stream(self, adapter: ProviderAdapter, request: SummaryRequest, sink: TextIO) -> str:
        """Write the completion for *request* into *sink* chunk by chunk.

        Rate limits are retried only while nothing has been written yet.
        """
        chunks: list[str] = []
        attempt = 0
        while True:
            try:
                with stage("summarize"):
                    for chunk in adapter.complete(request.model, request.system, request.user):
                        chunks.append(chunk)
                        sink.write(chunk)
                        sink.flush()
                break
            except RateLimitedError as exc:
                if chunks or attempt >= self.options.max_retries:
                    raise
                delay = backoff_delay(attempt, exc.retry_after)
                logger.warning(
                    "%s rate limited; retrying in %.1fs (attempt %d/%d)",
                    adapter.name, delay, attempt + 1, self.options.max_retries,
                )
                self._sleep(delay)
                attempt += 1
        summary = "".join(chunks)
        logger.info("summary complete: %d characters", len(summary))
        return summary
