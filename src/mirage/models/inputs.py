from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

MAX_HINT_LENGTH = 200

_HTML_SPECIAL_RE = re.compile(r"[<>\"'&]")


def sanitize_hint(value: str | None) -> str | None:
    """Strip HTML-special characters, trim, and cap a free-text hint.

    Returns None for missing or blank input.
    """
    if value is None:
        return None
    cleaned = _HTML_SPECIAL_RE.sub("", value).strip()[:MAX_HINT_LENGTH].strip()
    return cleaned or None


class AdvancedOptions(BaseModel):
    """Optional creative direction for a generation request."""

    style: str | None = None
    content: str | None = None
    topic: str | None = None

    @field_validator("style", "content", "topic", mode="before")
    @classmethod
    def clean(cls, v: object) -> str | None:
        if v is None:
            return None
        return sanitize_hint(str(v))

    @property
    def is_empty(self) -> bool:
        return not (self.style or self.content or self.topic)


class UpdateGeneratorInput(BaseModel):
    """Body of POST /api/update-generator (``{"path", "xHandle"}``)."""

    path: str = Field(min_length=1)
    x_handle: str | None = Field(default=None, validation_alias="xHandle")


class UpdateGeneratorOutput(BaseModel):
    success: bool
    generator: str
    message: str
    updated_rows: int = Field(default=0, serialization_alias="updatedRows")
