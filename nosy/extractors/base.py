"""Common interface shared by every extractor backend."""

from __future__ import annotations

import codecs
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def decode_text(data: bytes, charset: str | None = None, *, errors: str = "strict") -> str:
    """Decode *data* with the declared *charset*, UTF-8 when absent or unknown."""
    encoding = "utf-8"
    if charset:
        try:
            encoding = codecs.lookup(charset).name
        except LookupError:
            logger.warning("unknown charset %r, decoding as utf-8", charset)
    return data.decode(encoding, errors=errors)


class Extractor:
    """Convert raw content bytes into plain text.

    Subclasses implement :meth:`extract`.  Text backends decode with the
    *charset* the server declared.  Backends that need scratch files write
    them into *workdir*, which the caller owns and removes.

    Args:
        workdir:  Directory for temporary files of the current run.
        progress: Optional callback receiving human-readable status messages.
    """

    name = "base"

    def __init__(
        self,
        workdir: Path | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.workdir = Path(workdir) if workdir is not None else None
        self._progress = progress

    def extract(
        self,
        data: bytes,
        *,
        extension: str | None = None,
        mime: str | None = None,
        charset: str | None = None,
    ) -> str:
        raise NotImplementedError

    def report(self, message: str) -> None:
        logger.debug("%s: %s", self.name, message)
        if self._progress is not None:
            self._progress(message)

    def write_scratch(self, data: bytes, extension: str | None = None) -> Path:
        """Write *data* to a new file in the working directory and return its path."""
        if self.workdir is None:
            raise RuntimeError(f"{self.name} extractor needs a working directory")
        self.workdir.mkdir(parents=True, exist_ok=True)
        suffix = f".{extension}" if extension else ""
        fd, name = tempfile.mkstemp(prefix="raw-", suffix=suffix, dir=self.workdir)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        return Path(name)
