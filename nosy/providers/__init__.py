"""LLM provider registry.

Maps a provider identity (explicit, ``namespace::model``, or inferred from
the model name) to a :class:`~nosy.providers.base.ProviderAdapter` with its
API key resolved from the environment.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from nosy import settings
from nosy.errors import MissingKeyError, UnknownModelError, UnknownProviderError
from nosy.providers.anthropic import AnthropicAdapter
from nosy.providers.base import (
    ProviderAdapter,
    ProviderIdentity,
    ProviderSpec,
    WireProtocol,
)
from nosy.providers.cohere import CohereAdapter
from nosy.providers.gemini import GeminiAdapter
from nosy.providers.ollama import OllamaAdapter, normalize_ollama_host
from nosy.providers.openai import OpenAIChatAdapter
from nosy.providers.openai_responses import OpenAIResponsesAdapter

logger = logging.getLogger(__name__)

_P = ProviderIdentity
_W = WireProtocol

PROVIDERS: dict[ProviderIdentity, ProviderSpec] = {
    _P.GITHUB_COPILOT: ProviderSpec(_P.GITHUB_COPILOT, "https://models.inference.ai.azure.com", "GITHUB_COPILOT_API_KEY", _W.OPENAI_CHAT),
    _P.OPENAI: ProviderSpec(_P.OPENAI, "https://api.openai.com/v1", "OPENAI_API_KEY", _W.OPENAI_CHAT),
    _P.OPENAI_RESP: ProviderSpec(_P.OPENAI_RESP, "https://api.openai.com/v1", "OPENAI_API_KEY", _W.OPENAI_RESPONSES),
    _P.GEMINI: ProviderSpec(_P.GEMINI, "https://generativelanguage.googleapis.com/v1beta", "GEMINI_API_KEY", _W.GEMINI),
    _P.ANTHROPIC: ProviderSpec(_P.ANTHROPIC, "https://api.anthropic.com/v1", "ANTHROPIC_API_KEY", _W.ANTHROPIC),
    _P.FIREWORKS: ProviderSpec(_P.FIREWORKS, "https://api.fireworks.ai/inference/v1", "FIREWORKS_API_KEY", _W.OPENAI_CHAT),
    _P.TOGETHER: ProviderSpec(_P.TOGETHER, "https://api.together.xyz/v1", "TOGETHER_API_KEY", _W.OPENAI_CHAT),
    _P.GROQ: ProviderSpec(_P.GROQ, "https://api.groq.com/openai/v1", "GROQ_API_KEY", _W.OPENAI_CHAT),
    _P.MIMO: ProviderSpec(_P.MIMO, "https://api.xiaomimimo.com/v1", "MIMO_API_KEY", _W.OPENAI_CHAT),
    _P.NEBIUS: ProviderSpec(_P.NEBIUS, "https://api.studio.nebius.com/v1", "NEBIUS_API_KEY", _W.OPENAI_CHAT),
    _P.XAI: ProviderSpec(_P.XAI, "https://api.x.ai/v1", "XAI_API_KEY", _W.OPENAI_CHAT),
    _P.DEEPSEEK: ProviderSpec(_P.DEEPSEEK, "https://api.deepseek.com/v1", "DEEPSEEK_API_KEY", _W.OPENAI_CHAT),
    _P.ZAI: ProviderSpec(_P.ZAI, "https://api.z.ai/api/paas/v4", "ZAI_API_KEY", _W.OPENAI_CHAT),
    _P.BIGMODEL: ProviderSpec(_P.BIGMODEL, "https://open.bigmodel.cn/api/paas/v4", "BIGMODEL_API_KEY", _W.OPENAI_CHAT),
    _P.COHERE: ProviderSpec(_P.COHERE, "https://api.cohere.com/v2", "COHERE_API_KEY", _W.COHERE),
    _P.OLLAMA: ProviderSpec(_P.OLLAMA, "http://localhost:11434", None, _W.OLLAMA),
}

ADAPTERS: dict[WireProtocol, type[ProviderAdapter]] = {
    _W.OPENAI_CHAT: OpenAIChatAdapter,
    _W.OPENAI_RESPONSES: OpenAIResponsesAdapter,
    _W.ANTHROPIC: AnthropicAdapter,
    _W.GEMINI: GeminiAdapter,
    _W.COHERE: CohereAdapter,
    _W.OLLAMA: OllamaAdapter,
}

OLLAMA_HOST_ENV = "OLLAMA_HOST"
NAMESPACE_SEPARATOR = "::"

# Ordered: first match wins.
_MODEL_PATTERNS: tuple[tuple[re.Pattern[str], ProviderIdentity], ...] = (
    (re.compile(r"codex"), _P.OPENAI_RESP),
    (re.compile(r"^(gpt-(?!oss)|o1(-|$)|o3(-|$)|o4(-|$)|chatgpt)"), _P.OPENAI),
    (re.compile(r"claude"), _P.ANTHROPIC),
    (re.compile(r"gemini"), _P.GEMINI),
    (re.compile(r"^(command|c4ai)"), _P.COHERE),
    (re.compile(r"^grok"), _P.XAI),
    (re.compile(r"^deepseek"), _P.DEEPSEEK),
    (re.compile(r"^glm"), _P.ZAI),
    (re.compile(r"^mimo"), _P.MIMO),
    (re.compile(r"^accounts/fireworks/"), _P.FIREWORKS),
    (
        re.compile(
            r"^(llama-3\.\d+-.*-(instant|versatile)$"
            r"|gemma2-"
            r"|openai/gpt-oss-"
            r"|meta-llama/llama-4-"
            r"|moonshotai/"
            r"|qwen/qwen3-)",
        ),
        _P.GROQ,
    ),
)


@dataclass(frozen=True)
class ModelSpec:
    """A model name as sent on the wire plus the provider serving it."""

    name: str
    provider: ProviderIdentity


def parse_provider(value: str | ProviderIdentity) -> ProviderIdentity:
    if isinstance(value, ProviderIdentity):
        return value
    try:
        return ProviderIdentity(value.strip().lower())
    except ValueError:
        known = ", ".join(p.value for p in ProviderIdentity)
        raise UnknownProviderError(f"unknown provider '{value}' (known: {known})") from None


def split_namespace(model: str) -> tuple[str | None, str]:
    """Split ``"bigmodel::glm-4-plus"`` into ``("bigmodel", "glm-4-plus")``."""
    namespace, sep, name = model.partition(NAMESPACE_SEPARATOR)
    if not sep:
        return None, model
    return namespace.strip(), name.strip()


def infer_provider(model: str) -> ProviderIdentity:
    """Return the provider whose naming scheme *model* follows.

    Raises:
        UnknownModelError: No known pattern matches.
    """
    lowered = model.strip().lower()
    for pattern, identity in _MODEL_PATTERNS:
        if pattern.search(lowered):
            return identity
    raise UnknownModelError(
        f"cannot infer the provider for model '{model}'; pass --provider or use 'provider::model'",
    )


def resolve_model(explicit: str | ProviderIdentity | None, model: str) -> ModelSpec:
    namespace, name = split_namespace(model.strip())
    if not name:
        raise UnknownModelError("model name is empty")
    if explicit is not None:
        provider = parse_provider(explicit)
    elif namespace:
        provider = parse_provider(namespace)
    else:
        provider = infer_provider(name)
    logger.debug("model %r -> provider %s", model, provider.value)
    return ModelSpec(name=name, provider=provider)


def resolve_provider(
    explicit: str | ProviderIdentity | None,
    model: str,
    *,
    environ: Mapping[str, str] | None = None,
    client: httpx.Client | None = None,
    max_tokens: int = settings.MAX_TOKENS,
) -> ProviderAdapter:
    """Build the adapter for *model*, reading its API key from *environ*.

    Raises:
        UnknownModelError, UnknownProviderError: The provider cannot be
            determined.
        MissingKeyError: The provider's key variable is unset or empty.
    """
    env = os.environ if environ is None else environ
    identity = resolve_model(explicit, model).provider
    spec = PROVIDERS[identity]

    api_key: str | None = None
    if spec.key_env is not None:
        api_key = env.get(spec.key_env, "").strip()
        if not api_key:
            raise MissingKeyError(
                f"{spec.key_env} is not set (required for provider '{identity.value}')",
                env_var=spec.key_env,
            )

    base_url = None
    if identity is ProviderIdentity.OLLAMA and env.get(OLLAMA_HOST_ENV, "").strip():
        base_url = normalize_ollama_host(env[OLLAMA_HOST_ENV])

    adapter_cls = ADAPTERS[spec.protocol]
    return adapter_cls(spec, api_key, base_url=base_url, client=client, max_tokens=max_tokens)


__all__ = [
    "ADAPTERS",
    "PROVIDERS",
    "ModelSpec",
    "ProviderAdapter",
    "ProviderIdentity",
    "ProviderSpec",
    "WireProtocol",
    "infer_provider",
    "parse_provider",
    "resolve_model",
    "resolve_provider",
    "split_namespace",
]
