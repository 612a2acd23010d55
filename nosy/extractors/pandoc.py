"""Document conversion through the external ``pandoc`` command.

The input is written to a scratch file in the run's working directory and
pandoc renders it as plain text on stdout.  See
https://pandoc.org/MANUAL.html#general-options for the supported formats.
"""

from __future__ import annotations

import logging
import shutil
import subprocess

from nosy import settings
from nosy.errors import (
    EmptyOutputError,
    InvalidEncodingError,
    ToolFailedError,
    ToolMissingError,
)
from nosy.extractors.base import Extractor

logger = logging.getLogger(__name__)

_FORMAT_BY_EXTENSION: dict[str, str] = {
    "docx": "docx",
    "doc": "doc",
    "odt": "odt",
    "rtf": "rtf",
    "epub": "epub",
    "md": "markdown",
    "html": "html",
    "htm": "html",
    "xhtml": "html",
    "txt": "plain",
    "text": "plain",
    "tex": "latex",
    "latex": "latex",
}

_FORMAT_BY_MIME: dict[str, str] = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/msword": "doc",
    "application/vnd.oasis.opendocument.text": "odt",
    "application/rtf": "rtf",
    "text/rtf": "rtf",
    "application/epub+zip": "epub",
    "text/markdown": "markdown",
    "text/html": "html",
    "application/xhtml+xml": "html",
    "text/plain": "plain",
    "text/latex": "latex",
    "application/x-tex": "latex",
    "text/x-tex": "latex",
}

_OUTPUT_ARGS: tuple[str, ...] = ("--to", "plain", "--wrap=none", "--markdown-headings=atx")


def pandoc_input_format(extension: str | None, mime: str | None) -> str | None:
    """Return the ``--from=...`` argument for the hints, or ``None``.

    A known extension decides; the MIME type is only used when there is no
    extension at all.  Without either, pandoc guesses from the file itself.
    """
    if extension:
        fmt = _FORMAT_BY_EXTENSION.get(extension.lower())
    elif mime:
        fmt = _FORMAT_BY_MIME.get(mime.lower())
    else:
        fmt = None
    return f"--from={fmt}" if fmt else None


def pandoc_available(command: str = settings.PANDOC_COMMAND) -> bool:
    return shutil.which(command) is not None


class PandocExtractor(Extractor):
    name = "pandoc"
    command = settings.PANDOC_COMMAND

    def build_command(self, path: str, extension: str | None, mime: str | None) -> list[str]:
        argv = [self.command]
        from_arg = pandoc_input_format(extension, mime)
        if from_arg:
            argv.append(from_arg)
        argv.extend(_OUTPUT_ARGS)
        argv.append(path)
        return argv

    def extract(
        self,
        data: bytes,
        *,
        extension: str | None = None,
        mime: str | None = None,
        charset: str | None = None,
    ) -> str:
        executable = shutil.which(self.command)
        if executable is None:
            raise ToolMissingError(f"pandoc is not installed. {settings.PANDOC_INSTALLATION_HINT}")

        scratch = self.write_scratch(data, extension)
        argv = self.build_command(str(scratch), extension, mime)
        argv[0] = executable
        logger.debug("Running external CLI: %s", " ".join(argv))

        self.report("Extracting content with pandoc...")
        # subprocess.run kills the child if the wait is interrupted.
        try:
            proc = subprocess.run(argv, capture_output=True, check=False)
        except FileNotFoundError as exc:
            raise ToolMissingError(
                f"pandoc is not installed or not in PATH. {settings.PANDOC_INSTALLATION_HINT}",
            ) from exc
        finally:
            scratch.unlink(missing_ok=True)

        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise ToolFailedError(
                f"pandoc failed with exit code {proc.returncode}: {stderr}",
                returncode=proc.returncode,
                stderr=stderr,
            )

        try:
            text = proc.stdout.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise InvalidEncodingError("pandoc output is not valid UTF-8") from exc
        if not text:
            raise EmptyOutputError("pandoc produced empty output")
        return text
