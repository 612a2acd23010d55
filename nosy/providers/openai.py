"""OpenAI-compatible chat completions.

Also spoken by GitHub Models, Fireworks, Together, Groq, Xiaomi MiMo,
Nebius, xAI, DeepSeek, Z.ai and BigModel.
"""

from __future__ import annotations

from typing import Any

from nosy.errors import ProviderError
from nosy.providers.base import ProviderAdapter, WireProtocol, error_for_event


class OpenAIChatAdapter(ProviderAdapter):
    protocol = WireProtocol.OPENAI_CHAT

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/chat/completions"

    def payload(self, model: str, system: str, user: str) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "stream": True,
        }

    def parse(self, event: str | None, data: dict[str, Any]) -> str | None:
        err = data.get("error")
        if err:
            if isinstance(err, dict):
                raise error_for_event(
                    str(err.get("type") or err.get("code") or ""),
                    str(err.get("message") or ""),
                    self.name,
                )
            raise ProviderError(f"{self.name} stream error: {err}", self.name)
        choices = data.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        return delta.get("content")
