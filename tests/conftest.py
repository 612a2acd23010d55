"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest


def build_pdf(text: str = "Hello World") -> bytes:
    """Return a minimal one-page PDF showing *text* in Helvetica."""
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        (
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>"
        ),
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_at
    return bytes(out)


@pytest.fixture
def pdf_bytes() -> bytes:
    return build_pdf("Hello World")


@pytest.fixture(autouse=True)
def _restore_nosy_logger() -> Iterator[None]:
    """The CLI reconfigures the ``nosy`` logger; undo it after each test."""
    nosy_logger = logging.getLogger("nosy")
    handlers = list(nosy_logger.handlers)
    level = nosy_logger.level
    propagate = nosy_logger.propagate
    yield
    nosy_logger.handlers[:] = handlers
    nosy_logger.setLevel(level)
    nosy_logger.propagate = propagate
