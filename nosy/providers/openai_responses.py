"""OpenAI Responses API (``/v1/responses``), used by the codex models."""

from __future__ import annotations

from typing import Any

from nosy.providers.base import ProviderAdapter, WireProtocol, error_for_event


class OpenAIResponsesAdapter(ProviderAdapter):
    protocol = WireProtocol.OPENAI_RESPONSES

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/responses"

    def payload(self, model: str, system: str, user: str) -> dict[str, Any]:
        return {
            "model": model,
            "instructions": system,
            "input": [{"role": "user", "content": user}],
            "stream": True,
        }

    def parse(self, event: str | None, data: dict[str, Any]) -> str | None:
        kind = event or data.get("type", "")
        if kind == "response.output_text.delta":
            return data.get("delta")
        if kind == "error":
            raise error_for_event(
                str(data.get("code") or ""), str(data.get("message") or ""), self.name,
            )
        if kind == "response.failed":
            err = (data.get("response") or {}).get("error") or {}
            raise error_for_event(
                str(err.get("code") or "response.failed"),
                str(err.get("message") or "response failed"),
                self.name,
            )
        return None
