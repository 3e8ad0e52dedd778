from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Union

import httpx

from .adapters import SourceAdapter, build_default_adapters
from .candidates import DEFAULT_PERSON_FILTER, DEFAULT_RANKING, PersonFilterConfig, RankingPolicy
from .config import default_config
from .errors import InvalidQueryError
from .event_extractor import (
    DEFAULT_TIMELINE_RULES,
    TimelineRules,
    birth_event,
    extract_timeline_events,
)
from .events import TimelineEvent
from .models import InsertOutcome, PersonData, RawEvent, ResolveResult, SourceType
from .person_lookup import resolve_one
from .search_pipeline import search_all_sources
from .storage import IdentityStore
from .wiki import get_wikidata_dob, get_wikipedia_full_text, get_wikipedia_summary

logger = logging.getLogger(__name__)

PersonLookup = Callable[[str], Optional[PersonData]]
EventLike = Union[RawEvent, TimelineEvent]

MSG_CANDIDATES = "Select the correct person from multiple verified sources."
MSG_RETRY_CANDIDATES = "Found profiles from web search. Select the correct person."
MSG_NOT_FOUND = "No information found for this person. Please try searching for a notable public figure."
MSG_NO_SUMMARY = "Wikipedia summary not found."


def insert_events(
    store: IdentityStore,
    identity_id: int,
    events: Sequence[EventLike],
    *,
    default_source_url: Optional[str] = None,
    provenance_note: Optional[str] = None,
) -> List[InsertOutcome]:
    """
    Insert events one at a time, in order.

    A failing event is recorded in its outcome and the loop moves on; the
    caller decides whether any failure matters. A provenance row is written
    when the event carries both a source URL and a snippet; losing it leaves
    the stored event in place and is reported as provenance_error.
    """
    outcomes: List[InsertOutcome] = []
    for ev in events:
        source_url = ev.source_url or default_source_url
        snippet = ev.source_snippet or None
        try:
            event_id = store.insert_event(
                identity_id,
                ev.date,
                ev.event_text,
                list(ev.categories),
                source_url,
                snippet,
                ev.confidence,
            )
        except Exception as e:
            logger.warning("error inserting event %r: %s: %s", ev.event_text, type(e).__name__, e)
            outcomes.append(InsertOutcome(event_text=ev.event_text, error=f"{type(e).__name__}: {e}"))
            continue

        outcome = InsertOutcome(event_text=ev.event_text, event_id=event_id)
        if source_url and snippet:
            try:
                store.insert_provenance(event_id, source_url, snippet, provenance_note)
            except Exception as e:
                logger.warning("error recording provenance for event %d: %s: %s", event_id, type(e).__name__, e)
                outcome.provenance_error = f"{type(e).__name__}: {e}"
        outcomes.append(outcome)

    failed = sum(1 for o in outcomes if not o.ok)
    if failed:
        logger.warning("inserted %d/%d events for profile %d", len(outcomes) - failed, len(outcomes), identity_id)
    return outcomes


class PersonResolver:
    """
    Tiered resolution of a free-text name:
      stored identity -> fan-out candidates -> generative lookup -> fan-out retry.
    Upstream failures degrade to "no result"; StorageError propagates.
    """

    def __init__(
        self,
        store: IdentityStore,
        adapters: Optional[Sequence[SourceAdapter]] = None,
        *,
        lookup: Optional[PersonLookup] = None,
        person_filter: PersonFilterConfig = DEFAULT_PERSON_FILTER,
        ranking: Optional[RankingPolicy] = None,
        timeline_rules: Optional[TimelineRules] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.adapters = list(adapters) if adapters is not None else build_default_adapters(default_config())
        self.lookup = lookup or resolve_one
        self.person_filter = person_filter
        self.ranking = ranking or DEFAULT_RANKING
        self.timeline_rules = timeline_rules or DEFAULT_TIMELINE_RULES

    async def search_candidates(self, query: str):
        return await search_all_sources(
            query, self.adapters, person_filter=self.person_filter, ranking=self.ranking
        )

    async def _generative_lookup(self, query: str) -> Optional[PersonData]:
        try:
            return await asyncio.to_thread(self.lookup, query)
        except Exception as e:
            logger.warning("generative lookup error for %r: %s: %s", query, type(e).__name__, e)
            return None

    def _existing(self, query: str) -> Optional[ResolveResult]:
        exact = self.store.find_by_exact_normalized_name(query)
        if exact is not None:
            return ResolveResult(status="existing", profiles=[exact])
        profiles = self.store.find_by_fuzzy_name_or_summary(query)
        if profiles:
            return ResolveResult(status="existing", profiles=profiles)
        return None

    def _identity_for(self, name: str, summary: str, hero_image_url: Optional[str]) -> int:
        # a concurrent request may have created the same person meanwhile
        existing = self.store.find_by_exact_normalized_name(name)
        if existing is not None:
            logger.info("profile already exists, skipping insert: %d", existing.id)
            return existing.id
        return self.store.insert_identity(name, summary, hero_image_url)

    async def resolve(self, query: str) -> ResolveResult:
        q = (query or "").strip()
        if not q:
            raise InvalidQueryError("Query parameter is required")

        found = self._existing(q)
        if found is not None:
            logger.info("found %d existing profile(s) for %r", len(found.profiles), q)
            return found

        candidates = await self.search_candidates(q)
        if candidates:
            return ResolveResult(status="candidates", candidates=candidates, message=MSG_CANDIDATES)

        logger.info("no candidates for %r, trying generative lookup", q)
        person = await self._generative_lookup(q)
        if person is not None:
            identity_id = self._identity_for(person.name, person.summary, person.hero_image_url)
            outcomes = insert_events(
                self.store,
                identity_id,
                person.events,
                provenance_note="Auto-generated from generative research",
            )
            return self._created(
                identity_id,
                f"Successfully created profile for {person.name} with {len(person.events)} events.",
                outcomes,
            )

        logger.info("generative lookup found no data for %r, retrying source search", q)
        retry = await self.search_candidates(q)
        if retry:
            return ResolveResult(status="candidates", candidates=retry, message=MSG_RETRY_CANDIDATES)
        return ResolveResult(status="not_found", message=MSG_NOT_FOUND)

    async def create_from_candidate(self, title: str, source_type: Union[SourceType, str, None] = None) -> ResolveResult:
        """
        Create (or reuse) the stored identity for a candidate the caller picked.
        Encyclopedia picks get a timeline from the article's full text plus the
        Wikidata birth date when available.
        """
        title = (title or "").strip()
        if not title:
            raise InvalidQueryError("Missing title")
        st = SourceType(source_type) if source_type else SourceType.WEB

        existing = self.store.find_by_exact_normalized_name(title)
        if existing is not None:
            return ResolveResult(status="existing", profiles=[existing])

        events: List[TimelineEvent] = []
        source_url: Optional[str] = None
        if st == SourceType.ENCYCLOPEDIA:
            summary = await get_wikipedia_summary(title, client=self.client)
            if summary is None:
                return ResolveResult(status="not_found", message=MSG_NO_SUMMARY)
            source_url = summary.url
            identity_id = self.store.insert_identity(title, summary.extract, summary.image_url)

            if summary.wikidata_id:
                dob = await get_wikidata_dob(summary.wikidata_id, client=self.client)
                if dob:
                    events.append(birth_event(title, dob, source_url))
            full_text = await get_wikipedia_full_text(title, client=self.client)
            if full_text:
                events.extend(
                    extract_timeline_events(full_text, title, self.timeline_rules, source_url=source_url)
                )
            note = f"Extracted from Wikipedia full text for {title}"
        else:
            identity_id = self.store.insert_identity(
                title, f"Profile information for {title} from {st.value}", None
            )
            note = None

        outcomes = insert_events(self.store, identity_id, events, default_source_url=source_url, provenance_note=note)
        return self._created(
            identity_id,
            f"Created profile for {title} with {sum(1 for o in outcomes if o.ok)} events.",
            outcomes,
        )

    def _created(self, identity_id: int, message: str, outcomes: List[InsertOutcome]) -> ResolveResult:
        profile = self.store.get_identity(identity_id)
        return ResolveResult(
            status="created",
            profiles=[profile] if profile else [],
            message=message,
            insert_outcomes=outcomes,
            events=self.store.list_events(identity_id),
        )
