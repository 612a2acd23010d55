"""Project settings for nosy.

Module-level constants with a handful of environment overrides.  Runtime
options for a single run live in :class:`nosy.pipeline.PipelineOptions`;
the values here are only its defaults.
"""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Project identity
# ---------------------------------------------------------------------------
BOT_NAME = "nosy"

# ---------------------------------------------------------------------------
# Summarization defaults
# ---------------------------------------------------------------------------
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_LANGUAGE = "English"

# Anthropic requires max_tokens on every request; other providers use their
# own server-side default.
MAX_TOKENS = _env_int("NOSY_MAX_TOKENS", 8192)

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------
HTTP_TIMEOUT = _env_int("NOSY_HTTP_TIMEOUT", 30)          # seconds
HEADLESS_TIMEOUT = _env_int("NOSY_HEADLESS_TIMEOUT", 60)  # seconds

# Provider streams can stay silent for a while before the first token.
PROVIDER_READ_TIMEOUT = 300.0

# ---------------------------------------------------------------------------
# Retry policy (network failures while fetching, rate limits from providers)
# ---------------------------------------------------------------------------
MAX_RETRIES = _env_int("NOSY_MAX_RETRIES", 3)
RETRY_BASE_DELAY = 1.0   # seconds, doubled per attempt
RETRY_MAX_DELAY = 30.0

# ---------------------------------------------------------------------------
# User-agent
# ---------------------------------------------------------------------------
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

# ---------------------------------------------------------------------------
# Headless browser (Playwright)
# ---------------------------------------------------------------------------
PLAYWRIGHT_LAUNCH_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)

# ---------------------------------------------------------------------------
# External tools and models
# ---------------------------------------------------------------------------
PANDOC_COMMAND = "pandoc"
PANDOC_INSTALLATION_HINT = (
    "Please install pandoc by following https://pandoc.org/installing.html "
    "and ensure it is included in your PATH."
)
WHISPER_MODEL_PATH_ENV = "WHISPER_MODEL_PATH"
# Length of the audio windows fed to openai-whisper checkpoints (seconds).
WHISPER_CHUNK_SECONDS = _env_int("NOSY_WHISPER_CHUNK_SECONDS", 300)

# ---------------------------------------------------------------------------
# Working directory
# ---------------------------------------------------------------------------
WORKDIR_PREFIX = "nosy-"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = "info"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
