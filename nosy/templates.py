"""Message templates for the summarize path.

Templates use ``{{name}}`` placeholders (whitespace inside the braces is
allowed).  There is no control flow: a placeholder is replaced by its value
verbatim, and a placeholder with no value renders as an empty string (with a
warning).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from pathlib import Path

from nosy.errors import TemplateError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_TEMPLATE = """\
You are an expert at reading documents, articles, transcripts and web pages
and writing faithful, well-structured summaries of them.

Write the summary in {{language}}, whatever the language of the source.

- Start with a one-sentence overview of what the content is about.
- Follow with the key points as a short bulleted list, most important first.
- Keep names, numbers and dates exactly as they appear in the source.
- Do not add opinions or information that is not in the source.
- If the content is empty or unreadable, say so instead of guessing.
"""

DEFAULT_USER_TEMPLATE = """\
Summarize the following content.

<content>
{{content}}
</content>
"""

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def placeholders(template: str) -> set[str]:
    return set(_PLACEHOLDER_RE.findall(template))


def render(template: str, variables: Mapping[str, str]) -> str:
    """Substitute every ``{{name}}`` in *template* from *variables*.

    Unknown names render as ``""``.
    """
    missing = sorted(placeholders(template) - set(variables))
    if missing:
        logger.warning("unknown template variable(s) rendered empty: %s", ", ".join(missing))
    return _PLACEHOLDER_RE.sub(lambda m: str(variables.get(m.group(1), "")), template)


def load_template(path: str | Path | None, default: str) -> str:
    if path is None:
        return default
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(f"failed to read template file '{path}': {exc}") from exc


def build_messages(
    content: str,
    *,
    language: str,
    system_template: str | Path | None = None,
    user_template: str | Path | None = None,
) -> tuple[str, str]:
    """Render the (system, user) message pair for *content*.

    Template arguments are file paths; ``None`` selects the built-in text.
    """
    system = render(load_template(system_template, DEFAULT_SYSTEM_TEMPLATE), {"language": language})
    user = render(load_template(user_template, DEFAULT_USER_TEMPLATE), {"content": content})
    logger.debug("rendered messages: system=%d chars, user=%d chars", len(system), len(user))
    return system, user
