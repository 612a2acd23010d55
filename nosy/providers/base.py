"""Shared machinery for LLM provider adapters.

Every adapter issues one streaming ``POST`` through :mod:`httpx` and turns
the response body into text chunks.  Subclasses describe their wire format
(:meth:`ProviderAdapter.endpoint`, :meth:`~ProviderAdapter.headers`,
:meth:`~ProviderAdapter.payload`, :meth:`~ProviderAdapter.parse`); status
mapping, event framing and transport errors are handled here.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from nosy import settings
from nosy.errors import (
    AuthError,
    InvalidModelError,
    ProviderError,
    RateLimitedError,
    UnavailableError,
)

logger = logging.getLogger(__name__)


class ProviderIdentity(str, Enum):
    GITHUB_COPILOT = "github-copilot"
    OPENAI = "openai"
    OPENAI_RESP = "openai-resp"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    FIREWORKS = "fireworks"
    TOGETHER = "together"
    GROQ = "groq"
    MIMO = "mimo"
    NEBIUS = "nebius"
    XAI = "xai"
    DEEPSEEK = "deepseek"
    ZAI = "zai"
    BIGMODEL = "bigmodel"
    COHERE = "cohere"
    OLLAMA = "ollama"


class WireProtocol(str, Enum):
    OPENAI_CHAT = "openai-chat"
    OPENAI_RESPONSES = "openai-responses"
    ANTHROPIC = "anthropic-messages"
    GEMINI = "gemini"
    COHERE = "cohere-v2"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ProviderSpec:
    identity: ProviderIdentity
    base_url: str
    key_env: str | None
    protocol: WireProtocol


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

def _retry_after(headers: httpx.Headers) -> float:
    raw = headers.get("retry-after", "").strip()
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return 0.0


def error_message(body: str) -> str:
    """Pull a human-readable message out of an error response body."""
    try:
        data = json.loads(body)
    except ValueError:
        return body.strip()[:500]
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        err = data.get("error", data)
        if isinstance(err, dict):
            return str(err.get("message") or err.get("type") or err)
        if isinstance(err, str):
            return err
        if data.get("message"):
            return str(data["message"])
    return body.strip()[:500]


def error_for_status(
    status: int,
    message: str,
    provider: str,
    *,
    retry_after: float = 0.0,
) -> ProviderError:
    text = f"{provider} returned HTTP {status}: {message}"
    if status in (401, 403):
        return AuthError(text, provider, status)
    if status == 429:
        return RateLimitedError(text, provider, status, retry_after=retry_after)
    if status == 404 or (status == 400 and "model" in message.lower()):
        return InvalidModelError(text, provider, status)
    if status >= 500:
        return UnavailableError(text, provider, status)
    return ProviderError(text, provider, status)


_RATE_LIMIT_KEYWORDS = ("rate_limit", "rate limit", "too many requests", "quota", "resource_exhausted")
_AUTH_KEYWORDS = ("authentication", "unauthorized", "unauthenticated", "permission", "api key", "api_key")
_UNAVAILABLE_KEYWORDS = ("overload", "unavailable", "server_error", "internal error")


def error_for_event(kind: str, message: str, provider: str) -> ProviderError:
    """Map an error reported inside the stream by its type and message."""
    lowered = f"{kind} {message}".lower()
    text = f"{provider} stream error ({kind}): {message}" if kind else f"{provider} stream error: {message}"
    if any(k in lowered for k in _RATE_LIMIT_KEYWORDS):
        return RateLimitedError(text, provider)
    if any(k in lowered for k in _AUTH_KEYWORDS):
        return AuthError(text, provider)
    if any(k in lowered for k in _UNAVAILABLE_KEYWORDS) or kind == "api_error":
        return UnavailableError(text, provider)
    if "not_found" in lowered or "model" in lowered:
        return InvalidModelError(text, provider)
    return ProviderError(text, provider)


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

def iter_sse(lines: Iterable[str]) -> Iterator[tuple[str | None, str]]:
    """Yield ``(event, data)`` pairs from Server-Sent Events lines."""
    event: str | None = None
    data: list[str] = []
    for line in lines:
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = None, []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value.removeprefix(" ")
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def iter_ndjson(lines: Iterable[str]) -> Iterator[tuple[str | None, str]]:
    for line in lines:
        if line.strip():
            yield None, line


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class ProviderAdapter:
    """Stream completions from one provider.

    Args:
        spec:      Static description of the provider.
        api_key:   Credential, or ``None`` for providers without auth.
        base_url:  Overrides ``spec.base_url``.
        client:    Shared :class:`httpx.Client`; one is created per request
                   otherwise.
        max_tokens: Upper bound on the completion length where the wire
                   format requires one.
    """

    protocol: WireProtocol
    framing = "sse"

    def __init__(
        self,
        spec: ProviderSpec,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        client: httpx.Client | None = None,
        max_tokens: int = settings.MAX_TOKENS,
    ) -> None:
        self.spec = spec
        self.api_key = api_key
        self.base_url = (base_url or spec.base_url).rstrip("/")
        self.max_tokens = max_tokens
        self._client = client

    @property
    def name(self) -> str:
        return self.spec.identity.value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} {self.base_url}>"

    # -- wire format ------------------------------------------------------

    def endpoint(self, model: str) -> str:
        raise NotImplementedError

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def payload(self, model: str, system: str, user: str) -> dict[str, Any]:
        raise NotImplementedError

    def parse(self, event: str | None, data: dict[str, Any]) -> str | None:
        """Return the text carried by one stream event, or ``None``.

        Raises a :class:`~nosy.errors.ProviderError` for error events.
        """
        raise NotImplementedError

    # -- streaming --------------------------------------------------------

    def complete(self, model: str, system: str, user: str) -> Iterator[str]:
        """Yield the completion for (*system*, *user*) as text chunks."""
        url = self.endpoint(model)
        headers = {"Accept": "text/event-stream" if self.framing == "sse" else "application/x-ndjson"}
        headers.update(self.headers())
        body = self.payload(model, system, user)
        logger.debug("POST %s (provider=%s, model=%s)", url, self.name, model)

        owned = self._client is None
        client = self._client or httpx.Client(
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT, read=settings.PROVIDER_READ_TIMEOUT),
        )
        try:
            with client.stream("POST", url, headers=headers, json=body) as response:
                if not response.is_success:
                    response.read()
                    raise error_for_status(
                        response.status_code,
                        error_message(response.text),
                        self.name,
                        retry_after=_retry_after(response.headers),
                    )
                yield from self._chunks(response.iter_lines())
        except httpx.TransportError as exc:
            raise UnavailableError(
                f"{self.name} request failed: {exc}", self.name,
            ) from exc
        finally:
            if owned:
                client.close()

    def _chunks(self, lines: Iterable[str]) -> Iterator[str]:
        frames = iter_sse(lines) if self.framing == "sse" else iter_ndjson(lines)
        for event, raw in frames:
            if raw.strip() == "[DONE]":
                return
            try:
                data = json.loads(raw)
            except ValueError as exc:
                raise ProviderError(
                    f"{self.name} sent a malformed stream event: {raw[:200]!r}", self.name,
                ) from exc
            if not isinstance(data, dict):
                continue
            text = self.parse(event, data)
            if text:
                yield text

    def complete_text(self, model: str, system: str, user: str) -> str:
        return "".join(self.complete(model, system, user))
