"""Request schemas for the Condense API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class SubmitRequest(BaseModel):
    """Content to summarize: literal text, or a URL when ``is_url`` is set."""

    user_id: str = Field(..., min_length=1, max_length=255)
    content: str = Field(
        ...,
        min_length=1,
        max_length=100_000,
        description="Raw text to summarize, or an http(s) URL when is_url is true.",
    )
    is_url: bool = Field(default=False, description="Treat content as a URL to fetch.")

    @field_validator("is_url", mode="before")
    @classmethod
    def _coerce_is_url(cls, value: Any) -> Any:
        # Missing or null means text; strings other than "true"/"1" mean false.
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1")
        return value


class CreateUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    user_type: str | None = Field(
        default=None,
        description="CLIENT (default) or ADMIN, case-insensitive.",
    )
