from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Candidate

logger = logging.getLogger(__name__)


DEFAULT_DISALLOWED_TERMS: Tuple[str, ...] = (
    "tv",
    "channel",
    "show",
    "news",
    "media",
    "network",
    "company",
    "organization",
    "franchise",
    "universe",
    "alert",
    "common media",
    "shared universe",
)


@dataclass(frozen=True)
class PersonFilterConfig:
    disallowed_terms: Tuple[str, ...] = DEFAULT_DISALLOWED_TERMS

    @staticmethod
    def from_config(terms: Optional[Iterable[str]]) -> "PersonFilterConfig":
        if not terms:
            return PersonFilterConfig()
        cleaned = tuple(t.strip().lower() for t in terms if isinstance(t, str) and t.strip())
        return PersonFilterConfig(disallowed_terms=cleaned or DEFAULT_DISALLOWED_TERMS)


DEFAULT_PERSON_FILTER = PersonFilterConfig()


@dataclass(frozen=True)
class RankingPolicy:
    confidence_weight: float = 0.6
    similarity_weight: float = 0.4
    max_candidates: int = 4


DEFAULT_RANKING = RankingPolicy()


def looks_like_non_person(candidate: Candidate, config: PersonFilterConfig = DEFAULT_PERSON_FILTER) -> bool:
    # Plain substring test; "Steve Channelson" is excluded as well.
    name = candidate.name.lower()
    snippet = candidate.snippet.lower()
    return any(t in name or t in snippet for t in config.disallowed_terms)


def filter_people(
    candidates: Iterable[Candidate],
    config: PersonFilterConfig = DEFAULT_PERSON_FILTER,
) -> List[Candidate]:
    kept: List[Candidate] = []
    dropped = 0
    for c in candidates:
        if looks_like_non_person(c, config):
            dropped += 1
            continue
        kept.append(c)
    if dropped:
        logger.debug("person filter dropped %d candidate(s)", dropped)
    return kept


def normalize_name(name: str) -> str:
    s = (name or "").lower()
    s = re.sub(r"[^a-z0-9\s]", "", s)
    return re.sub(r"\s+", " ", s).strip()


def dedupe_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    """
    Merge candidates that name the same person across sources.

    Same person == equal normalized names. On collision the higher confidence
    record replaces the kept one in place; ties keep the first seen, and a
    non-encyclopedia record never replaces an encyclopedia one. Repeated
    emissions from a single source collapse on the same name key, so no
    separate (name, source_type) pass is needed.
    """
    result: List[Candidate] = []
    index_by_name: Dict[str, int] = {}

    for c in candidates:
        norm = normalize_name(c.name)
        existing = index_by_name.get(norm)
        if existing is not None:
            kept = result[existing]
            # an encyclopedia record is never displaced by another source
            if c.confidence > kept.confidence and (c.is_encyclopedia or not kept.is_encyclopedia):
                result[existing] = c
            continue

        index_by_name[norm] = len(result)
        result.append(c)

    return result


def rank_candidates(
    candidates: Iterable[Candidate],
    policy: RankingPolicy = DEFAULT_RANKING,
) -> List[Candidate]:
    def sort_key(c: Candidate) -> Tuple[int, float]:
        bucket = 0 if c.is_encyclopedia else 1
        return bucket, -c.composite_score(policy.confidence_weight, policy.similarity_weight)

    # sorted() is stable: equal scores keep fan-out order
    ranked = sorted(candidates, key=sort_key)
    return ranked[: max(0, policy.max_candidates)]
