"""Classify an input string as a local path or a remote URL."""

from __future__ import annotations

from dataclasses import dataclass

from nosy.errors import ClassificationError

_REMOTE_PREFIXES: tuple[str, ...] = ("http://", "https://")
_FILE_PREFIX = "file://"


@dataclass(frozen=True)
class LocalPath:
    path: str


@dataclass(frozen=True)
class RemoteUrl:
    url: str


InputReference = LocalPath | RemoteUrl


def resolve(value: str) -> InputReference:
    """Return the :data:`InputReference` for *value*.

    ``http://`` and ``https://`` inputs are remote; ``file://`` inputs are
    local with the prefix stripped; anything else is taken as a filesystem
    path verbatim.  Whether the path exists is checked later, at fetch time.

    Raises:
        ClassificationError: If *value* is empty.
    """
    if not value or not value.strip():
        raise ClassificationError("input is empty: expected a file path or an http(s) URL")
    if value.startswith(_REMOTE_PREFIXES):
        return RemoteUrl(value)
    if value.startswith(_FILE_PREFIX):
        return LocalPath(value[len(_FILE_PREFIX):])
    return LocalPath(value)
