"""PDF text extraction with pypdf."""

from __future__ import annotations

import io
import logging

from nosy.errors import CorruptContentError, EmptyOutputError
from nosy.extractors.base import Extractor

logger = logging.getLogger(__name__)


class PdfExtractor(Extractor):
    """Concatenate the text layer of every page, in page order.

    Scanned pages without a text layer contribute nothing; a document with no
    text at all is an :class:`~nosy.errors.EmptyOutputError`.
    """

    name = "pdf"

    def extract(
        self,
        data: bytes,
        *,
        extension: str | None = None,
        mime: str | None = None,
        charset: str | None = None,
    ) -> str:
        from pypdf import PdfReader

        if b"%PDF-" not in data[:1024]:
            raise CorruptContentError("content is not a PDF document (missing %PDF- header)")
        try:
            reader = PdfReader(io.BytesIO(data))
            pages: list[str] = []
            for i, page in enumerate(reader.pages):
                text = (page.extract_text() or "").strip()
                if text:
                    pages.append(text)
                else:
                    logger.debug("page %d has no text layer", i + 1)
        except Exception as exc:
            raise CorruptContentError(
                f"failed to parse PDF content: {exc}",
            ) from exc

        self.report(f"extracted text from {len(pages)} of {len(reader.pages)} pages")
        text = "\n\n".join(pages).strip()
        if not text:
            raise EmptyOutputError("failed to extract text from PDF content")
        return text
