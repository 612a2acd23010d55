"""Map content hints (MIME type, file extension) to an extractor kind.

The MIME hint is consulted first, then the extension.  A user-forced kind
always wins, and content nobody recognizes is treated as plain text.
"""

from __future__ import annotations

import enum
import logging

from nosy.errors import SelectionError

logger = logging.getLogger(__name__)


class ExtractorKind(str, enum.Enum):
    PLAIN = "plain"
    HTML = "html"
    PDF = "pdf"
    PANDOC = "pandoc"
    WHISPER = "whisper"


# (kind, MIME types, extensions)
_INDEX: tuple[tuple[ExtractorKind, tuple[str, ...], tuple[str, ...]], ...] = (
    (
        ExtractorKind.HTML,
        ("text/html", "application/xhtml+xml"),
        ("html", "htm", "xhtml"),
    ),
    (
        ExtractorKind.PDF,
        ("application/pdf",),
        ("pdf",),
    ),
    (
        ExtractorKind.PLAIN,
        ("text/plain", "text/markdown"),
        ("txt", "text", "md"),
    ),
    (
        ExtractorKind.PANDOC,
        (
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/msword",
            "application/vnd.oasis.opendocument.text",
            "application/rtf",
            "text/rtf",
            "application/epub+zip",
            "text/latex",
            "application/x-tex",
            "text/x-tex",
        ),
        ("docx", "doc", "odt", "rtf", "epub", "tex", "latex"),
    ),
    (
        ExtractorKind.WHISPER,
        (
            "audio/mpeg",
            "audio/mp3",
            "audio/x-mp3",
            "audio/wav",
            "audio/x-wav",
            "audio/mp4",
            "video/mp4",
        ),
        ("mp3", "wav", "mp4", "m4a"),
    ),
)

MIME_INDEX: dict[str, ExtractorKind] = {
    mime: kind for kind, mimes, _ in _INDEX for mime in mimes
}
EXT_INDEX: dict[str, ExtractorKind] = {
    ext: kind for kind, _, exts in _INDEX for ext in exts
}

# Media families not listed individually above still go to speech-to-text.
_MIME_FAMILIES: tuple[tuple[str, ExtractorKind], ...] = (
    ("audio/", ExtractorKind.WHISPER),
    ("video/", ExtractorKind.WHISPER),
)


def match_kind_by_mime(mime: str | None) -> ExtractorKind | None:
    if not mime:
        return None
    mime = mime.split(";", 1)[0].strip().lower()
    kind = MIME_INDEX.get(mime)
    if kind is not None:
        return kind
    for prefix, family_kind in _MIME_FAMILIES:
        if mime.startswith(prefix):
            return family_kind
    return None


def match_kind_by_extension(ext: str | None) -> ExtractorKind | None:
    if not ext:
        return None
    return EXT_INDEX.get(ext.lstrip(".").lower())


def detect_kind(mime: str | None, ext: str | None) -> ExtractorKind:
    """Return the kind implied by the hints.

    Raises:
        SelectionError: If neither hint maps to a kind.
    """
    kind = match_kind_by_mime(mime)
    if kind is not None:
        logger.debug("extractor kind by mime %r: %s", mime, kind.value)
        return kind
    kind = match_kind_by_extension(ext)
    if kind is not None:
        logger.debug("extractor kind by extension %r: %s", ext, kind.value)
        return kind
    raise SelectionError(f"no extractor matches mime={mime!r} ext={ext!r}")


def select_kind(
    mime: str | None,
    ext: str | None,
    forced: ExtractorKind | None = None,
) -> ExtractorKind:
    """Pick the extractor for content with the given hints.

    A *forced* kind is returned as-is, even when it contradicts the hints, so
    users can deliberately reinterpret content.  Unrecognized content falls
    back to :attr:`ExtractorKind.PLAIN`.
    """
    if forced is not None:
        with_hints = mime is not None or ext is not None
        try:
            detected = detect_kind(mime, ext) if with_hints else None
        except SelectionError:
            detected = None
        if detected is not None and detected is not forced:
            logger.warning(
                "Forced extractor '%s' differs from detected '%s' (mime=%s, ext=%s)",
                forced.value, detected.value, mime, ext,
            )
        return forced

    try:
        return detect_kind(mime, ext)
    except SelectionError as exc:
        logger.info("%s - treating content as plain text", exc)
        return ExtractorKind.PLAIN
