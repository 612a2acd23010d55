"""Exception taxonomy for the fetch -> extract -> summarize pipeline.

Every error carries the pipeline ``stage`` it came from so the CLI can tell
"no such file" apart from "pandoc not installed" or "provider rejected the
key" without inspecting messages.
"""

from __future__ import annotations


class NosyError(RuntimeError):
    """Base class for all pipeline errors.

    Attributes:
        stage -- pipeline stage that failed (``fetch``, ``extract``, ...)
    """

    stage = "run"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage


# ---------------------------------------------------------------------------
# Scheme resolution
# ---------------------------------------------------------------------------

class ClassificationError(NosyError):
    stage = "resolve"


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

class FetchError(NosyError):
    """Raised when the input cannot be read or downloaded.

    Attributes:
        source -- the path or URL that failed
    """

    stage = "fetch"

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class HttpStatusError(FetchError):
    def __init__(self, message: str, source: str = "", status: int = 0) -> None:
        super().__init__(message, source)
        self.status = status


class NetworkError(FetchError):
    pass


class RenderError(FetchError):
    pass


class LocalReadError(FetchError):
    pass


# ---------------------------------------------------------------------------
# Extractor selection
# ---------------------------------------------------------------------------

class SelectionError(NosyError):
    """No extractor matches the content hints.  Degrades to plain text."""

    stage = "select"


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionError(NosyError):
    stage = "extract"


class InvalidEncodingError(ExtractionError):
    pass


class CorruptContentError(ExtractionError):
    pass


class EmptyOutputError(ExtractionError):
    pass


class ToolMissingError(ExtractionError):
    pass


class ToolFailedError(ExtractionError):
    def __init__(self, message: str, returncode: int, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ModelMissingError(ExtractionError):
    pass


class InferenceError(ExtractionError):
    pass


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(NosyError):
    stage = "config"


class UnknownModelError(ConfigError):
    pass


class UnknownProviderError(ConfigError):
    pass


class MissingKeyError(ConfigError):
    def __init__(self, message: str, env_var: str) -> None:
        super().__init__(message)
        self.env_var = env_var


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class TemplateError(NosyError):
    stage = "render"


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class ProviderError(NosyError):
    """Raised when an LLM provider rejects or fails a request.

    Attributes:
        provider -- provider identifier (``openai``, ``anthropic``, ...)
        status   -- HTTP status code (0 if no response was received)
    """

    stage = "provider"

    def __init__(self, message: str, provider: str = "", status: int = 0) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class AuthError(ProviderError):
    pass


class RateLimitedError(ProviderError):
    def __init__(
        self,
        message: str,
        provider: str = "",
        status: int = 429,
        retry_after: float = 0.0,
    ) -> None:
        super().__init__(message, provider, status)
        self.retry_after = retry_after


class UnavailableError(ProviderError):
    pass


class InvalidModelError(ProviderError):
    pass
