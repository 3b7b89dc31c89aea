"""Pydantic request models for the scan API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from postmaint.config.models import MAX_BATCH_SIZE, MIN_BATCH_SIZE


class StartScanRequest(BaseModel):
    """Body of POST /api/scan/start."""

    model_config = ConfigDict(extra="forbid")

    post_types: list[str] = Field(min_length=1)
    batch_size: int | None = Field(default=None, ge=MIN_BATCH_SIZE, le=MAX_BATCH_SIZE)

    @field_validator("post_types", mode="before")
    @classmethod
    def split_comma_separated(cls, v: object) -> object:
        """Accept "post,page" as well as ["post", "page"]."""
        if isinstance(v, str):
            return [part for part in v.split(",") if part.strip()]
        return v

    @field_validator("post_types")
    @classmethod
    def validate_post_types(cls, v: list[str]) -> list[str]:
        """Strip names and reject blanks."""
        names = [name.strip() for name in v]
        if any(not name for name in names):
            raise ValueError("post type names must not be blank")
        return names
