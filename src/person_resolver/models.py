from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .events import EVENT_CATEGORIES


class SourceType(str, Enum):
    ENCYCLOPEDIA = "encyclopedia"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    YOUTUBE = "youtube"
    LINKEDIN = "linkedin"
    GITHUB = "github"
    GEEKSFORGEEKS = "geeksforgeeks"
    STACKOVERFLOW = "stackoverflow"
    QUORA = "quora"
    EDUCATION = "education"
    MEDIUM = "medium"
    DEVTO = "devto"
    BEHANCE = "behance"
    DRIBBBLE = "dribbble"
    ABOUTME = "aboutme"
    PORTFOLIO = "portfolio"
    WEB = "web"


class Candidate(BaseModel):
    """
    A provisional identity hypothesis returned by one source for a query.
    """
    name: str
    descriptor: str = Field(default="")
    source_url: str = Field(min_length=1)
    snippet: str = Field(default="")
    similarity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    source_type: SourceType
    verified: bool = False
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    profile_image: Optional[str] = None

    @property
    def is_encyclopedia(self) -> bool:
        return self.source_type == SourceType.ENCYCLOPEDIA

    def composite_score(self, confidence_weight: float = 0.6, similarity_weight: float = 0.4) -> float:
        return confidence_weight * self.confidence + similarity_weight * self.similarity_score


def similarity_for_rank(rank_index: int) -> float:
    # positional decay within a single source's own result ordering
    return max(0.0, 1.0 - rank_index * 0.1)


class RawEvent(BaseModel):
    date: str
    event_text: str = Field(min_length=1)
    categories: List[str] = Field(default_factory=lambda: ["other"])
    source_url: Optional[str] = None
    source_snippet: Optional[str] = None
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    @field_validator("categories", mode="before")
    @classmethod
    def _known_categories(cls, v):
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list):
            return ["other"]
        cats = []
        for c in v:
            c = str(c).strip().lower()
            cats.append(c if c in EVENT_CATEGORIES else "other")
        return list(dict.fromkeys(cats)) or ["other"]


class PersonData(BaseModel):
    """Structured answer of the generative single-answer lookup."""
    name: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    events: List[RawEvent]
    hero_image_url: Optional[str] = None


class StoredIdentity(BaseModel):
    id: int
    name: str
    summary: str = ""
    hero_image_url: Optional[str] = None
    created_at: str = ""


class StoredEvent(BaseModel):
    id: int
    person_id: int
    date: str
    event_text: str
    categories: List[str] = Field(default_factory=list)
    source_url: Optional[str] = None
    source_snippet: Optional[str] = None
    confidence: float = 0.9


class InsertOutcome(BaseModel):
    event_text: str
    event_id: Optional[int] = None
    error: Optional[str] = None
    # the event row exists even when its provenance write failed
    provenance_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.event_id is not None


ResolveStatus = Literal["existing", "created", "candidates", "not_found"]


class ResolveResult(BaseModel):
    status: ResolveStatus
    profiles: List[StoredIdentity] = Field(default_factory=list)
    candidates: List[Candidate] = Field(default_factory=list)
    message: str = ""
    insert_outcomes: List[InsertOutcome] = Field(default_factory=list)
    events: List[StoredEvent] = Field(default_factory=list)

    @property
    def is_new_profile(self) -> bool:
        return self.status == "created"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"
