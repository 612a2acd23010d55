"""Pydantic records produced by the pipeline."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator, model_validator

from nosy.filetype import ExtractorKind


class ExtractionResult(BaseModel):
    """Text extracted from one input.  Only built on success."""

    text: str
    kind: ExtractorKind
    source: str = ""
    char_count: int = 0

    @model_validator(mode="after")
    def fill_char_count(self) -> ExtractionResult:
        self.char_count = len(self.text)
        return self


class SummaryRequest(BaseModel):
    """Rendered messages plus the model they are sent to."""

    system: str
    user: str
    model: str
    provider: str
    language: str = "English"

    @field_validator("model", "provider", mode="before")
    @classmethod
    def strip_names(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v
