"""nosy - turn any URL or local file into plain text, and summarize it with an LLM.

Quick usage::

    from nosy import extract, summarize

    result = extract("https://example.com/blog/some-post")
    print(result.kind, result.char_count)
    print(result.text)

    import sys
    summarize("./talk.mp3", sys.stdout, model="gpt-4o", language="French")

Supported content: HTML (readability / trafilatura / DOM heuristic), PDF,
plain text, documents converted by pandoc, and audio/video transcribed with
a local whisper model.
"""

from __future__ import annotations

from typing import Any, TextIO

__version__ = "0.1.0"

from nosy.errors import NosyError  # noqa: E402
from nosy.filetype import ExtractorKind  # noqa: E402
from nosy.items import ExtractionResult, SummaryRequest  # noqa: E402
from nosy.pipeline import Pipeline, PipelineOptions  # noqa: E402
from nosy.providers import ProviderIdentity  # noqa: E402


def extract(value: str, **options: Any) -> ExtractionResult:
    """Extract the text behind *value*; *options* are :class:`PipelineOptions` fields."""
    return Pipeline(PipelineOptions(**options)).extract(value)


def summarize(value: str, sink: TextIO, **options: Any) -> str:
    """Summarize *value* into *sink*; *options* are :class:`PipelineOptions` fields."""
    return Pipeline(PipelineOptions(**options)).summarize(value, sink)


__all__ = [
    "ExtractionResult",
    "ExtractorKind",
    "NosyError",
    "Pipeline",
    "PipelineOptions",
    "ProviderIdentity",
    "SummaryRequest",
    "__version__",
    "extract",
    "summarize",
]
