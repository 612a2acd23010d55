"""Extractor backends: one per :class:`~nosy.filetype.ExtractorKind`."""

from __future__ import annotations

from pathlib import Path

from nosy.extractors.base import Extractor, ProgressCallback
from nosy.extractors.html import HtmlExtractor
from nosy.extractors.pandoc import PandocExtractor
from nosy.extractors.pdf import PdfExtractor
from nosy.extractors.plain import PlainTextExtractor
from nosy.extractors.whisper import WhisperExtractor
from nosy.filetype import ExtractorKind

EXTRACTORS: dict[ExtractorKind, type[Extractor]] = {
    ExtractorKind.PLAIN: PlainTextExtractor,
    ExtractorKind.HTML: HtmlExtractor,
    ExtractorKind.PDF: PdfExtractor,
    ExtractorKind.PANDOC: PandocExtractor,
    ExtractorKind.WHISPER: WhisperExtractor,
}


def build_extractor(
    kind: ExtractorKind,
    workdir: Path | None = None,
    progress: ProgressCallback | None = None,
) -> Extractor:
    return EXTRACTORS[kind](workdir=workdir, progress=progress)


__all__ = [
    "EXTRACTORS",
    "Extractor",
    "HtmlExtractor",
    "PandocExtractor",
    "PdfExtractor",
    "PlainTextExtractor",
    "ProgressCallback",
    "WhisperExtractor",
    "build_extractor",
]
