"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RateLimitExceededResponse(BaseModel):
    """Body of a 429 Too Many Requests response."""

    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(
        ..., description="Short machine-friendly error label."
    )
    message: str = Field(
        ..., description="Human-readable wait estimate."
    )
    retry_after: int = Field(
        ...,
        alias="retryAfter",
        ge=0,
        description="Seconds until the oldest counted request leaves the window.",
    )
    limit: int = Field(
        ..., ge=0, description="Requests allowed per window for this endpoint."
    )
