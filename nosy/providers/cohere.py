"""Cohere v2 chat."""

from __future__ import annotations

from typing import Any

from nosy.providers.base import ProviderAdapter, WireProtocol, error_for_event


class CohereAdapter(ProviderAdapter):
    protocol = WireProtocol.COHERE

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/chat"

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
        kind = event or data.get("type", "")
        if kind == "content-delta":
            content = ((data.get("delta") or {}).get("message") or {}).get("content") or {}
            return content.get("text")
        if kind == "message-end":
            reason = str((data.get("delta") or {}).get("finish_reason") or "")
            if reason == "ERROR":
                raise error_for_event(reason, "generation ended with an error", self.name)
        return None
