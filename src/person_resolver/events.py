from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field, field_validator

EVENT_CATEGORIES = frozenset(
    {"birth", "education", "career", "award", "achievement", "role", "personal", "other"}
)


class TimelineEvent(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="ISO date YYYY-MM-DD")
    event_text: str = Field(..., description="Verbatim source line")
    categories: list[str] = Field(..., min_length=1)
    source_snippet: str = Field(default="", description="Bounded excerpt of event_text")
    confidence: float = Field(..., ge=0.0, le=1.0)
    source_url: Optional[str] = None

    @field_validator("categories")
    @classmethod
    def _vocabulary(cls, v: list[str]) -> list[str]:
        unknown = [c for c in v if c not in EVENT_CATEGORIES]
        if unknown:
            raise ValueError(f"unknown event categories: {unknown}")
        return v
