"""Ollama native chat API (newline-delimited JSON)."""

from __future__ import annotations

from typing import Any

from nosy.providers.base import ProviderAdapter, WireProtocol, error_for_event


def normalize_ollama_host(value: str) -> str:
    """``OLLAMA_HOST`` may omit the scheme (``127.0.0.1:11434``)."""
    value = value.strip().rstrip("/")
    if "://" not in value:
        value = f"http://{value}"
    return value


class OllamaAdapter(ProviderAdapter):
    protocol = WireProtocol.OLLAMA
    framing = "ndjson"

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/api/chat"

    def headers(self) -> dict[str, str]:
        return {}

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
        if data.get("error"):
            raise error_for_event("", str(data["error"]), self.name)
        return (data.get("message") or {}).get("content")
