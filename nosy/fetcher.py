"""nosy.fetcher - read a local file or download a URL as raw bytes.

Two strategies exist for remote inputs:

* ``FetchMode.GET``      - a single HTTP GET through ``urllib`` (the default)
* ``FetchMode.HEADLESS`` - render the page in a headless Chromium via
  Playwright and take the resulting DOM

Usage::

    from nosy.fetcher import FetchMode, fetch
    from nosy.scheme import resolve

    content = fetch(resolve("https://example.com/a"), FetchMode.GET)
    print(content.mime, content.extension, len(content.data))
"""

from __future__ import annotations

import contextlib
import enum
import gzip
import logging
import posixpath
import urllib.error
import urllib.request
import zlib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from nosy import settings
from nosy.errors import (
    FetchError,
    HttpStatusError,
    LocalReadError,
    NetworkError,
    RenderError,
)
from nosy.scheme import InputReference, LocalPath, RemoteUrl

logger = logging.getLogger(__name__)


class FetchMode(str, enum.Enum):
    GET = "get"
    HEADLESS = "headless"


@dataclass(frozen=True)
class FetchedContent:
    """Raw bytes of one input plus the hints used to pick and run an extractor.

    *charset* is the text encoding declared by the server, if any.
    """

    data: bytes
    mime: str | None = None
    extension: str | None = None
    source: str = ""
    charset: str | None = None


# ---------------------------------------------------------------------------
# Hints
# ---------------------------------------------------------------------------

def normalize_mime(value: str | None) -> str | None:
    """``"Text/HTML; charset=utf-8"`` -> ``"text/html"``; blank -> ``None``."""
    if not value:
        return None
    mime = value.split(";", 1)[0].strip().lower()
    return mime or None


def extension_of(path: str) -> str | None:
    """Lower-cased extension of *path* without the dot, or ``None``."""
    suffix = posixpath.splitext(path.rstrip("/"))[1]
    if len(suffix) <= 1:
        return None
    return suffix[1:].lower()


def _url_extension(url: str) -> str | None:
    return extension_of(unquote(urlparse(url).path))


def content_charset(headers: object | None) -> str | None:
    """Lower-cased ``charset`` parameter of the Content-Type header, or ``None``."""
    if headers is None:
        return None
    try:
        return headers.get_content_charset()
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Local files
# ---------------------------------------------------------------------------

def read_local(path: str) -> FetchedContent:
    """Read *path* from disk.  The extension is the only content hint."""
    p = Path(path).expanduser()
    try:
        data = p.read_bytes()
    except FileNotFoundError as exc:
        raise LocalReadError(f"no such file: '{path}'", source=path) from exc
    except IsADirectoryError as exc:
        raise LocalReadError(f"path is a directory, not a file: '{path}'", source=path) from exc
    except OSError as exc:
        raise LocalReadError(f"failed to read '{path}': {exc}", source=path) from exc
    logger.debug("read %d bytes from %s", len(data), p)
    return FetchedContent(data=data, mime=None, extension=extension_of(p.name), source=path)


# ---------------------------------------------------------------------------
# HTTP GET
# ---------------------------------------------------------------------------

def _decode_content_encoding(raw: bytes, headers: object | None, url: str) -> bytes:
    encoding = ""
    if headers is not None:
        try:
            encoding = str(headers.get("Content-Encoding", "")).lower().strip()
        except Exception:
            encoding = ""

    try:
        if encoding == "gzip":
            return gzip.decompress(raw)
        if encoding in ("deflate", "zlib"):
            return zlib.decompress(raw)
    except (OSError, zlib.error) as exc:
        raise NetworkError(
            f"{encoding} decompression failed for {url}: {exc}", source=url,
        ) from exc
    return raw


def fetch_url(
    url: str,
    *,
    timeout: int = settings.HTTP_TIMEOUT,
    user_agent: str | None = None,
) -> FetchedContent:
    """Download *url* with a single HTTP GET.

    Redirects are followed by ``urllib``.  Retrying transient failures is the
    caller's job (see :class:`nosy.pipeline.Pipeline`).

    Raises:
        HttpStatusError: On a non-2xx response.
        NetworkError:    On connection or transport failures.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise FetchError(f"Unsupported URL scheme: {parsed.scheme!r}", source=url)

    req = urllib.request.Request(
        url,
        headers={
            "User-Agent": user_agent or settings.USER_AGENT,
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;"
                "q=0.9,*/*;q=0.8"
            ),
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
        },
    )

    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw: bytes = resp.read()
            status = getattr(resp, "status", 200) or 200
            headers = resp.headers
            final_url = resp.geturl() or url
    except urllib.error.HTTPError as exc:
        raise HttpStatusError(
            f"HTTP {exc.code} fetching {url}: {exc.reason}",
            source=url,
            status=exc.code,
        ) from exc
    except urllib.error.URLError as exc:
        raise NetworkError(f"URL error fetching {url}: {exc.reason}", source=url) from exc
    except OSError as exc:
        raise NetworkError(f"Network error fetching {url}: {exc}", source=url) from exc

    if not 200 <= status < 300:
        raise HttpStatusError(f"HTTP {status} fetching {url}", source=url, status=status)

    data = _decode_content_encoding(raw, headers, url)
    mime = normalize_mime(headers.get("Content-Type") if headers is not None else None)
    if final_url != url:
        logger.debug("followed redirect %s -> %s", url, final_url)
    logger.debug("GET %s -> %d bytes (mime=%s)", url, len(data), mime)
    return FetchedContent(
        data=data,
        mime=mime,
        extension=_url_extension(final_url) or _url_extension(url),
        source=url,
        charset=content_charset(headers),
    )


# ---------------------------------------------------------------------------
# Headless browser
# ---------------------------------------------------------------------------

def fetch_rendered(
    url: str,
    *,
    timeout: int = settings.HEADLESS_TIMEOUT,
    user_agent: str | None = None,
) -> FetchedContent:
    """Render *url* in a fresh headless Chromium and return the final DOM.

    The browser is private to this call and closed on every exit path.

    Raises:
        RenderError: If Playwright is missing, navigation fails or times out.
    """
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as exc:
        raise RenderError(
            "headless fetch requires playwright: pip install playwright && "
            "playwright install chromium",
            source=url,
        ) from exc

    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(
                headless=True, args=list(settings.PLAYWRIGHT_LAUNCH_ARGS),
            )
            try:
                ctx = browser.new_context(
                    user_agent=user_agent or settings.USER_AGENT,
                    java_script_enabled=True,
                    viewport={"width": 1920, "height": 1080},
                    extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
                )
                page = ctx.new_page()
                response = page.goto(url, timeout=timeout * 1_000, wait_until="load")

                # SPAs keep loading after "load"; a short networkidle wait is
                # enough to catch most of them.
                try:
                    page.wait_for_load_state("networkidle", timeout=12_000)
                except Exception:
                    logger.debug("networkidle timed out for %s - continuing", url)

                if response is not None and not response.ok:
                    raise RenderError(
                        f"HTTP {response.status} rendering {url}", source=url,
                    )
                mime = None
                if response is not None:
                    mime = normalize_mime(response.headers.get("content-type"))
                html: str = page.content()
                final_url = page.url or url
            finally:
                with contextlib.suppress(Exception):
                    browser.close()
    except RenderError:
        raise
    except Exception as exc:
        raise RenderError(f"Playwright error rendering {url}: {exc}", source=url) from exc

    if not html.strip():
        raise RenderError(f"Playwright returned empty page for {url}", source=url)
    logger.debug("rendered %s -> %d chars", url, len(html))
    return FetchedContent(
        data=html.encode("utf-8"),
        mime=mime or "text/html",
        extension=_url_extension(final_url) or _url_extension(url),
        source=url,
        charset="utf-8",
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def fetch(
    ref: InputReference,
    mode: FetchMode = FetchMode.GET,
    *,
    timeout: int | None = None,
    user_agent: str | None = None,
) -> FetchedContent:
    """Fetch the bytes behind *ref*.

    Args:
        ref:        Result of :func:`nosy.scheme.resolve`.
        mode:       Strategy for remote URLs; ignored for local paths.
        timeout:    Network timeout in seconds (per-mode default if ``None``).
        user_agent: Override the browser-like default User-Agent.

    Raises:
        :class:`~nosy.errors.FetchError` subclasses.
    """
    if isinstance(ref, LocalPath):
        return read_local(ref.path)
    if isinstance(ref, RemoteUrl):
        logger.info("fetch: %s (mode=%s)", ref.url, mode.value)
        if mode is FetchMode.HEADLESS:
            return fetch_rendered(
                ref.url,
                timeout=timeout or settings.HEADLESS_TIMEOUT,
                user_agent=user_agent,
            )
        return fetch_url(ref.url, timeout=timeout or settings.HTTP_TIMEOUT, user_agent=user_agent)
    raise FetchError(f"unsupported input reference: {ref!r}")
