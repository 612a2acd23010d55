"""Anthropic Messages API."""

from __future__ import annotations

from typing import Any

from nosy.providers.base import ProviderAdapter, WireProtocol, error_for_event

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    protocol = WireProtocol.ANTHROPIC

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/messages"

    def headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key or "", "anthropic-version": ANTHROPIC_VERSION}

    def payload(self, model: str, system: str, user: str) -> dict[str, Any]:
        return {
            "model": model,
            "system": system,
            "messages": [{"role": "user", "content": user}],
            "max_tokens": self.max_tokens,
            "stream": True,
        }

    def parse(self, event: str | None, data: dict[str, Any]) -> str | None:
        kind = event or data.get("type", "")
        if kind == "content_block_delta":
            delta = data.get("delta") or {}
            if delta.get("type") == "text_delta":
                return delta.get("text")
            return None
        if kind == "error":
            err = data.get("error") or {}
            raise error_for_event(
                str(err.get("type") or ""), str(err.get("message") or ""), self.name,
            )
        return None
