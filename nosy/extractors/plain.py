"""Pass-through extractor for content that is already text.

The bytes are decoded verbatim (a UTF-8 byte order mark survives as
``U+FEFF``) with the server-declared charset, or UTF-8 when none was given.
"""

from __future__ import annotations

from nosy.errors import InvalidEncodingError
from nosy.extractors.base import Extractor, decode_text


class PlainTextExtractor(Extractor):
    name = "plain"

    def extract(
        self,
        data: bytes,
        *,
        extension: str | None = None,
        mime: str | None = None,
        charset: str | None = None,
    ) -> str:
        try:
            return decode_text(data, charset)
        except UnicodeDecodeError as exc:
            raise InvalidEncodingError(
                f"content is not valid {exc.encoding} text (byte {exc.start}): "
                "try --ext-kind to choose another extractor",
            ) from exc
