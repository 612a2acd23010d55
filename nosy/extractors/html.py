"""HTML -> readable text.

Main content is located with a three-tier cascade, then flattened to text
with one blank line between block elements:

Tier 1: readability-lxml  (Mozilla Readability algorithm)
Tier 2: trafilatura       (second-opinion extractor)
Tier 3: DOM heuristic     (paragraph density + priority CSS selectors)
"""

from __future__ import annotations

import contextlib
import logging
import re
from typing import NamedTuple

from bs4 import BeautifulSoup, NavigableString, Tag

from nosy.errors import EmptyOutputError
from nosy.extractors.base import Extractor, decode_text

logger = logging.getLogger(__name__)

# Minimum words for a tier's output to be considered successful
_READABILITY_MIN_WORDS = 50
_TRAFILATURA_MIN_WORDS = 30
_DOM_MIN_WORDS = 10

# Priority CSS selectors for DOM heuristic (tried in order)
_CONTENT_SELECTORS: tuple[str, ...] = (
    "article",
    "main",
    '[role="main"]',
    '[itemprop="articleBody"]',
    ".post-content",
    ".article-content",
    ".entry-content",
    ".post-body",
    ".article-body",
    "#content",
    "#main-content",
    ".story-body",
)

# Never part of the readable text
_INVISIBLE_TAGS: tuple[str, ...] = ("script", "style", "noscript", "template", "svg")

# Stripped as boilerplate before DOM heuristic scoring
_BOILERPLATE_TAGS: tuple[str, ...] = (
    *_INVISIBLE_TAGS,
    "nav",
    "header",
    "footer",
    "aside",
    "form",
    "button",
    "input",
    "select",
    "textarea",
)

# Class/id substrings that indicate non-content elements
_NOISE_SUBSTRINGS: tuple[str, ...] = (
    "sidebar",
    "comment",
    "advertisement",
    "banner",
    "promo",
    "related",
    "share",
    "social",
    "newsletter",
    "cookie",
    "popup",
    "modal",
)

# Class/id keywords that identify cookie-consent widgets (substring match)
_CONSENT_WIDGET_KEYWORDS: tuple[str, ...] = (
    "cookieyes", "cookiebot", "cookiehub", "onetrust",
    "borlabs", "complianz", "cookielawinfo", "cky-",
    "cookie-consent", "gdpr-consent",
)

# Elements that start a new paragraph in the flattened text
_BLOCK_TAGS: tuple[str, ...] = (
    "address", "article", "aside", "blockquote", "dd", "details", "div",
    "dl", "dt", "figcaption", "figure", "footer", "h1", "h2", "h3", "h4",
    "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p", "pre",
    "section", "summary", "table", "tr", "ul",
)

_PARA = "\u2029"  # paragraph separator
_LINE = "\u2028"  # line separator
_TEMPLATE_RE = re.compile(r"<template\b[^>]*>.*?</template>", re.DOTALL | re.IGNORECASE)


class ContentResult(NamedTuple):
    html: str
    method: str
    word_count: int


def _count_words(html: str) -> int:
    try:
        soup = BeautifulSoup(html, "lxml")
        return len(soup.get_text(separator=" ").split())
    except Exception:
        return 0


def _drop_tags(soup: BeautifulSoup, names: tuple[str, ...]) -> None:
    for el in soup.find_all(list(names)):
        if not el.decomposed:
            el.decompose()


def _preprocess_html(html: str) -> str:
    """Strip ``<template>`` blocks and cookie-consent overlays.

    Templates are removed with a regex before parsing: lxml re-parents
    ``<template>`` children into the body, so ``decompose()`` on the parsed
    container leaves them behind.
    """
    html = _TEMPLATE_RE.sub("", html)
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as exc:
        logger.debug("HTML pre-processing failed: %s", exc)
        return html

    for el in list(soup.find_all(True)):
        if not isinstance(el, Tag) or el.decomposed:
            continue
        combined = (
            " ".join(el.get("class") or []) + " " + str(el.get("id") or "")
        ).lower()
        if any(kw in combined for kw in _CONSENT_WIDGET_KEYWORDS):
            el.decompose()
    return str(soup)


# ---------------------------------------------------------------------------
# Tier 1: readability-lxml
# ---------------------------------------------------------------------------

def _try_readability(html: str) -> str | None:
    try:
        from readability import Document  # type: ignore[import-untyped]

        content = Document(html).summary(html_partial=False)
        if _count_words(content) >= _READABILITY_MIN_WORDS:
            return content
    except Exception as exc:
        logger.debug("readability failed: %s", exc)
    return None


# ---------------------------------------------------------------------------
# Tier 2: trafilatura
# ---------------------------------------------------------------------------

def _try_trafilatura(html: str) -> str | None:
    try:
        import trafilatura  # type: ignore[import-untyped]

        content = trafilatura.extract(
            html,
            include_tables=True,
            include_links=False,
            include_images=False,
            output_format="html",
            favor_recall=True,
        )
        if content and _count_words(content) >= _TRAFILATURA_MIN_WORDS:
            return content
    except Exception as exc:
        logger.debug("trafilatura failed: %s", exc)
    return None


# ---------------------------------------------------------------------------
# Tier 3: DOM heuristic
# ---------------------------------------------------------------------------

def _is_noisy_element(tag: Tag) -> bool:
    combined = " ".join(
        [
            " ".join(tag.get("class") or []),
            str(tag.get("id") or ""),
            str(tag.get("role") or ""),
        ],
    ).lower()
    return any(noise in combined for noise in _NOISE_SUBSTRINGS)


def dom_heuristic_extract(html: str) -> str:
    """Pick the main content element by selectors, then paragraph density.

    Falls back to the stripped ``<body>`` when no element dominates, so pages
    with many equal-weight sections keep all of them.
    """
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception:
        return html

    _drop_tags(soup, _BOILERPLATE_TAGS)
    for el in soup.find_all(["div", "section"]):
        if isinstance(el, Tag) and not el.decomposed and _is_noisy_element(el):
            el.decompose()

    for selector in _CONTENT_SELECTORS:
        try:
            elements = soup.select(selector)
        except Exception as exc:
            logger.debug("CSS selector %r failed: %s", selector, exc)
            continue
        if not elements:
            continue
        best = max(elements, key=lambda e: len(e.get_text(separator=" ").split()))
        if len(best.get_text(separator=" ").split()) >= _DOM_MIN_WORDS:
            return str(best)

    candidates: list[tuple[float, Tag]] = []
    for el in soup.find_all(["div", "section"]):
        para_text = " ".join(p.get_text(separator=" ") for p in el.find_all("p"))
        para_words = len(para_text.split())
        if para_words < _DOM_MIN_WORDS:
            continue
        total_words = len(el.get_text(separator=" ").split())
        density = para_words / max(total_words, 1)
        candidates.append((para_words * density, el))

    body = soup.find("body")
    if candidates:
        candidates.sort(key=lambda x: x[0], reverse=True)
        top_el = candidates[0][1]
        body_wc = len(body.get_text(separator=" ").split()) if body else 0
        top_wc = len(top_el.get_text(separator=" ").split())
        if body_wc == 0 or top_wc / body_wc >= 0.55:
            return str(top_el)
    return str(body) if body else str(soup)


def extract_main_content(html: str) -> ContentResult:
    """Locate the main content of *html*.

    Readability and trafilatura both run; trafilatura wins when it yields at
    least 1.4x the words (multi-section pages where readability fixates on
    one block).  If neither reaches its threshold, the DOM heuristic decides.
    """
    html = _preprocess_html(html)

    r_content = _try_readability(html)
    r_wc = _count_words(r_content) if r_content else 0
    t_content = _try_trafilatura(html)
    t_wc = _count_words(t_content) if t_content else 0
    logger.debug("readability=%d words  trafilatura=%d words", r_wc, t_wc)

    if r_content and t_content and t_wc >= r_wc * 1.4:
        return ContentResult(html=t_content, method="trafilatura", word_count=t_wc)
    if r_content:
        return ContentResult(html=r_content, method="readability", word_count=r_wc)
    if t_content:
        return ContentResult(html=t_content, method="trafilatura", word_count=t_wc)

    content = dom_heuristic_extract(html)
    return ContentResult(html=content, method="dom_heuristic", word_count=_count_words(content))


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

def html_to_text(html: str) -> str:
    """Flatten *html* into text.

    Whitespace inside a paragraph collapses as a browser would; block
    elements are separated by a blank line, ``<br>`` and ``<pre>`` line
    breaks are kept.
    """
    if not html or not html.strip():
        return ""
    soup = BeautifulSoup(html, "lxml")
    _drop_tags(soup, _INVISIBLE_TAGS)

    for pre in soup.find_all("pre"):
        pre.replace_with(NavigableString(_PARA + pre.get_text().replace("\n", _LINE) + _PARA))
    for br in soup.find_all("br"):
        br.replace_with(NavigableString(_LINE))
    for el in soup.find_all(list(_BLOCK_TAGS)):
        with contextlib.suppress(ValueError):
            el.insert_before(NavigableString(_PARA))
            el.insert_after(NavigableString(_PARA))

    paragraphs: list[str] = []
    for block in soup.get_text().split(_PARA):
        lines = [" ".join(line.split()) for line in block.split(_LINE)]
        text = "\n".join(line for line in lines if line)
        if text:
            paragraphs.append(text)
    return "\n\n".join(paragraphs)


class HtmlExtractor(Extractor):
    name = "html"

    def extract(
        self,
        data: bytes,
        *,
        extension: str | None = None,
        mime: str | None = None,
        charset: str | None = None,
    ) -> str:
        html = decode_text(data, charset, errors="replace")
        result = extract_main_content(html)
        self.report(f"main content via {result.method} ({result.word_count} words)")
        text = html_to_text(result.html).strip()
        if not text:
            raise EmptyOutputError("failed to extract text from HTML content")
        return text
