import httpx
import pytest

from person_resolver.adapters import SerpProfileAdapter, SourceAdapter, WikipediaAdapter, YouTubeAdapter
from person_resolver.models import Candidate, SourceType
from person_resolver.search_pipeline import gather_candidates, search_all_sources
from person_resolver.whitelist import FACEBOOK_RULES, LINKEDIN_RULES


class StaticAdapter(SourceAdapter):
    def __init__(self, name, source_type, candidates):
        self.name = name
        self.source_type = source_type
        self.candidates = candidates

    async def _search(self, query):
        return list(self.candidates)


class BrokenAdapter(SourceAdapter):
    name = "broken"

    async def _search(self, query):
        raise ConnectionError("unreachable")


class RaisingAdapter(SourceAdapter):
    """Bypasses the adapter-level guard entirely."""

    name = "raising"

    async def _search(self, query):
        return []

    async def search(self, query):
        raise RuntimeError("boom")


def cand(name, source_type, confidence=0.7, similarity=1.0, **kw):
    return Candidate(
        name=name,
        source_url=f"https://{source_type.value}.example/{name.replace(' ', '_')}",
        source_type=source_type,
        confidence=confidence,
        similarity_score=similarity,
        **kw,
    )


@pytest.mark.asyncio
async def test_encyclopedia_results_come_first_and_are_verified():
    web = StaticAdapter("web", SourceType.WEB, [cand("Jane Doe", SourceType.GITHUB)])
    wiki = StaticAdapter("wikipedia", SourceType.ENCYCLOPEDIA, [
        cand("Jane Doe (writer)", SourceType.ENCYCLOPEDIA, confidence=0.3),
    ])
    gathered = await gather_candidates("Jane Doe", [web, wiki])
    assert [c.name for c in gathered] == ["Jane Doe (writer)", "Jane Doe"]
    assert gathered[0].verified is True
    assert gathered[0].confidence == 0.9


@pytest.mark.asyncio
async def test_one_failing_adapter_does_not_drop_others():
    ok = StaticAdapter("linkedin", SourceType.LINKEDIN, [cand("Jane Doe", SourceType.LINKEDIN)])
    found = await search_all_sources("Jane Doe", [BrokenAdapter(), RaisingAdapter(), ok])
    assert [c.source_url for c in found] == ["https://linkedin.example/Jane_Doe"]


@pytest.mark.asyncio
async def test_never_more_than_four():
    many = [cand(f"Jane Doe {i}", SourceType.WEB, similarity=1.0 - i * 0.1) for i in range(8)]
    found = await search_all_sources("Jane Doe", [StaticAdapter("web", SourceType.WEB, many)])
    assert len(found) == 4
    assert [c.name for c in found] == ["Jane Doe 0", "Jane Doe 1", "Jane Doe 2", "Jane Doe 3"]


@pytest.mark.asyncio
async def test_filter_dedupe_rank_composition():
    wiki = StaticAdapter("wikipedia", SourceType.ENCYCLOPEDIA, [cand("Jane Doe", SourceType.ENCYCLOPEDIA)])
    social = StaticAdapter("facebook", SourceType.FACEBOOK, [
        cand("Jane Doe", SourceType.FACEBOOK, confidence=0.7),
        cand("Jane Doe Fan Channel", SourceType.FACEBOOK, confidence=0.7),
    ])
    pro = StaticAdapter("linkedin", SourceType.LINKEDIN, [cand("J. Doe", SourceType.LINKEDIN, confidence=0.8)])

    found = await search_all_sources("Jane Doe", [social, pro, wiki])
    assert [(c.name, c.source_type) for c in found] == [
        ("Jane Doe", SourceType.ENCYCLOPEDIA),
        ("J. Doe", SourceType.LINKEDIN),
    ]


@pytest.mark.asyncio
async def test_ada_lovelace_with_only_encyclopedia_configured(monkeypatch):
    monkeypatch.setattr("person_resolver.adapters.serpapi_configured", lambda: False)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"query": {"search": [
            {"ns": 0, "title": "Ada Lovelace", "snippet": "English mathematician and writer"},
        ]}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        adapters = [
            WikipediaAdapter(client=client),
            SerpProfileAdapter("facebook", FACEBOOK_RULES, confidence=0.7),
            YouTubeAdapter(api_key="", client=client),
            SerpProfileAdapter("linkedin", LINKEDIN_RULES, confidence=0.8),
        ]
        gathered = await gather_candidates("Ada Lovelace", adapters)
        found = await search_all_sources("Ada Lovelace", adapters)

    assert len(gathered) == 1
    assert len(found) == 1
    assert found[0].name == "Ada Lovelace"
    assert found[0].is_encyclopedia


@pytest.mark.asyncio
async def test_no_adapters():
    assert await search_all_sources("Jane Doe", []) == []
