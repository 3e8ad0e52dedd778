from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from .adapters import SourceAdapter
from .candidates import (
    DEFAULT_PERSON_FILTER,
    DEFAULT_RANKING,
    PersonFilterConfig,
    RankingPolicy,
    dedupe_candidates,
    filter_people,
    rank_candidates,
)
from .models import Candidate, SourceType

logger = logging.getLogger(__name__)


async def _run_contained(adapter: SourceAdapter, query: str) -> List[Candidate]:
    # One adapter's failure must not abort the wave.
    try:
        return list(await adapter.search(query))
    except Exception as e:
        logger.warning("%s: unexpected failure: %s: %s", adapter.name, type(e).__name__, e)
        return []


def _as_encyclopedia(c: Candidate) -> Candidate:
    return c.model_copy(update={"verified": True, "confidence": 0.9})


async def gather_candidates(query: str, adapters: Sequence[SourceAdapter]) -> List[Candidate]:
    """
    Run every adapter concurrently and wait for all of them.

    Returns the concatenation of all results, encyclopedia adapters first,
    otherwise in adapter order. No overall deadline: each adapter is bounded
    by its own HTTP timeout.
    """
    results: Tuple[List[Candidate], ...] = tuple(
        await asyncio.gather(*(_run_contained(a, query) for a in adapters))
    )

    counts = {a.name: len(r) for a, r in zip(adapters, results)}
    logger.info("search results for %r: %s", query, counts)

    encyclopedia: List[Candidate] = []
    others: List[Candidate] = []
    for adapter, found in zip(adapters, results):
        if adapter.source_type == SourceType.ENCYCLOPEDIA:
            encyclopedia.extend(_as_encyclopedia(c) for c in found)
        else:
            others.extend(found)
    return encyclopedia + others


async def search_all_sources(
    query: str,
    adapters: Sequence[SourceAdapter],
    *,
    person_filter: PersonFilterConfig = DEFAULT_PERSON_FILTER,
    ranking: Optional[RankingPolicy] = None,
) -> List[Candidate]:
    """Fan-out -> person filter -> dedupe -> rank, bounded to ranking.max_candidates."""
    ranking = ranking or DEFAULT_RANKING
    gathered = await gather_candidates(query, adapters)
    people = filter_people(gathered, person_filter)
    deduped = dedupe_candidates(people)
    ranked = rank_candidates(deduped, ranking)
    logger.info(
        "candidates for %r: gathered=%d people=%d unique=%d returned=%d",
        query, len(gathered), len(people), len(deduped), len(ranked),
    )
    return ranked
