"""Google Gemini ``streamGenerateContent`` with SSE framing."""

from __future__ import annotations

from typing import Any

from nosy.providers.base import (
    ProviderAdapter,
    WireProtocol,
    error_for_event,
    error_for_status,
)


class GeminiAdapter(ProviderAdapter):
    protocol = WireProtocol.GEMINI

    def endpoint(self, model: str) -> str:
        model = model.removeprefix("models/")
        return f"{self.base_url}/models/{model}:streamGenerateContent?alt=sse"

    def headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key or ""}

    def payload(self, model: str, system: str, user: str) -> dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": user}]}],
        }

    def parse(self, event: str | None, data: dict[str, Any]) -> str | None:
        err = data.get("error")
        if isinstance(err, dict):
            code = err.get("code")
            message = str(err.get("message") or "")
            if isinstance(code, int) and code >= 400:
                raise error_for_status(code, message, self.name)
            raise error_for_event(str(err.get("status") or ""), message, self.name)
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        # "thought" parts carry model reasoning, not answer text
        return "".join(p.get("text", "") for p in parts if not p.get("thought")) or None
