import json

import httpx
import pytest

from person_resolver import resolver as resolver_mod
from person_resolver.adapters import SourceAdapter
from person_resolver.errors import InvalidQueryError, StorageError
from person_resolver.models import Candidate, PersonData, RawEvent, SourceType
from person_resolver.resolver import (
    MSG_CANDIDATES,
    MSG_NOT_FOUND,
    MSG_RETRY_CANDIDATES,
    PersonResolver,
    insert_events,
)
from person_resolver.storage import JsonFileStore
from person_resolver.wiki import WikiSummary


class ScriptedAdapter(SourceAdapter):
    """Returns one scripted result list per call; [] once the script runs out."""

    name = "scripted"

    def __init__(self, *waves):
        self.waves = list(waves)
        self.calls = 0

    async def _search(self, query):
        self.calls += 1
        return self.waves.pop(0) if self.waves else []


class FlakyEventStore(JsonFileStore):
    def insert_event(self, identity_id, date, text, categories, source_url=None, source_snippet=None, confidence=0.9):
        if text == "bad":
            raise ValueError("constraint failed")
        return super().insert_event(identity_id, date, text, categories, source_url, source_snippet, confidence)


class NoProvenanceStore(JsonFileStore):
    def insert_provenance(self, event_id, url, snippet, note=None):
        raise OSError("provenance table locked")


class BrokenStore(JsonFileStore):
    def find_by_exact_normalized_name(self, name):
        raise StorageError("database unreachable")


def web_candidate(name="Jane Doe"):
    return Candidate(
        name=name,
        source_url=f"https://github.com/{name.replace(' ', '').lower()}",
        source_type=SourceType.GITHUB,
        confidence=0.7,
        similarity_score=1.0,
    )


def ada():
    return PersonData(
        name="Ada Lovelace",
        summary="English mathematician and writer.",
        hero_image_url=None,
        events=[
            RawEvent(
                date="1815-12-10",
                event_text="Born in London",
                categories=["birth"],
                source_url="https://en.wikipedia.org/wiki/Ada_Lovelace",
                source_snippet="born 10 December 1815",
                confidence=0.95,
            ),
            RawEvent(date="1843-01-01", event_text="Published the Notes", categories=["achievement"]),
        ],
    )


def no_lookup(query):
    return None


def read_store(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "profiles.json")


@pytest.mark.asyncio
async def test_blank_query_is_rejected(store):
    with pytest.raises(InvalidQueryError):
        await PersonResolver(store, []).resolve("   ")


@pytest.mark.asyncio
async def test_existing_exact_match_short_circuits(store):
    store.insert_identity("Ada Lovelace", "English mathematician")
    adapter = ScriptedAdapter([web_candidate()])

    result = await PersonResolver(store, [adapter], lookup=no_lookup).resolve("ada  lovelace")

    assert result.status == "existing"
    assert [p.name for p in result.profiles] == ["Ada Lovelace"]
    assert adapter.calls == 0


@pytest.mark.asyncio
async def test_existing_fuzzy_match_on_summary(store):
    store.insert_identity("Ada Lovelace", "English mathematician")
    result = await PersonResolver(store, [], lookup=no_lookup).resolve("mathematician")
    assert result.status == "existing"
    assert result.profiles[0].name == "Ada Lovelace"


@pytest.mark.asyncio
async def test_candidates_from_fan_out(store):
    adapter = ScriptedAdapter([web_candidate()])

    def lookup(query):
        raise AssertionError("generative lookup must not run when candidates exist")

    result = await PersonResolver(store, [adapter], lookup=lookup).resolve("Jane Doe")

    assert result.status == "candidates"
    assert result.message == MSG_CANDIDATES
    assert [c.name for c in result.candidates] == ["Jane Doe"]
    assert not result.is_new_profile


@pytest.mark.asyncio
async def test_generative_lookup_creates_identity_with_events(store):
    result = await PersonResolver(store, [ScriptedAdapter()], lookup=lambda q: ada()).resolve("Ada Lovelace")

    assert result.status == "created"
    assert result.is_new_profile
    assert result.profiles[0].name == "Ada Lovelace"
    assert [o.ok for o in result.insert_outcomes] == [True, True]

    events = store.list_events(result.profiles[0].id)
    assert [e.event_text for e in events] == ["Born in London", "Published the Notes"]
    # only the event carrying both url and snippet gets provenance
    prov = read_store(store.path)["provenance"]
    assert len(prov) == 1
    assert prov[0]["snippet"] == "born 10 December 1815"


@pytest.mark.asyncio
async def test_generative_result_reuses_existing_identity(store):
    existing_id = store.insert_identity("Ada Lovelace", "Analytical engine notes")

    result = await PersonResolver(store, [], lookup=lambda q: ada()).resolve("Countess of Lovelace")

    assert result.status == "created"
    assert result.profiles[0].id == existing_id
    assert len(read_store(store.path)["profiles"]) == 1
    assert len(store.list_events(existing_id)) == 2


@pytest.mark.asyncio
async def test_partial_insert_failure_continues(tmp_path):
    store = FlakyEventStore(tmp_path / "profiles.json")
    person = PersonData(
        name="Jane Doe",
        summary="Engineer.",
        events=[
            RawEvent(date="2001-01-01", event_text="Joined Acme", categories=["career"]),
            RawEvent(date="2002-01-01", event_text="bad", categories=["career"]),
            RawEvent(date="2003-01-01", event_text="Became CTO", categories=["role"]),
        ],
    )

    result = await PersonResolver(store, [], lookup=lambda q: person).resolve("Jane Doe")

    assert result.status == "created"
    outcomes = result.insert_outcomes
    assert [o.ok for o in outcomes] == [True, False, True]
    assert "constraint failed" in outcomes[1].error
    assert [e.event_text for e in store.list_events(result.profiles[0].id)] == ["Joined Acme", "Became CTO"]


@pytest.mark.asyncio
async def test_retry_fan_out_after_empty_lookup(store):
    adapter = ScriptedAdapter([], [web_candidate()])

    result = await PersonResolver(store, [adapter], lookup=no_lookup).resolve("Jane Doe")

    assert adapter.calls == 2
    assert result.status == "candidates"
    assert result.message == MSG_RETRY_CANDIDATES


@pytest.mark.asyncio
async def test_not_found_creates_nothing(store):
    adapter = ScriptedAdapter()

    result = await PersonResolver(store, [adapter], lookup=no_lookup).resolve("Nobody Special")

    assert result.status == "not_found"
    assert result.message == MSG_NOT_FOUND
    assert result.profiles == [] and result.candidates == []
    assert adapter.calls == 2
    assert not store.path.exists()


@pytest.mark.asyncio
async def test_failing_lookup_is_no_data(store):
    def lookup(query):
        raise TimeoutError("model timed out")

    result = await PersonResolver(store, [], lookup=lookup).resolve("Jane Doe")
    assert result.status == "not_found"


@pytest.mark.asyncio
async def test_storage_failure_propagates(tmp_path):
    with pytest.raises(StorageError):
        await PersonResolver(BrokenStore(tmp_path / "p.json"), [], lookup=no_lookup).resolve("Jane Doe")


def test_insert_events_uses_default_source_url(store):
    pid = store.insert_identity("Jane Doe", "Engineer.")
    events = [RawEvent(date="2001-01-01", event_text="Joined Acme", categories=["career"], source_snippet="joined")]

    outcomes = insert_events(store, pid, events, default_source_url="https://acme.example/jane", provenance_note="test")

    assert outcomes[0].ok
    prov = read_store(store.path)["provenance"]
    assert prov == [{
        "id": 1,
        "event_id": outcomes[0].event_id,
        "url": "https://acme.example/jane",
        "fetch_time": prov[0]["fetch_time"],
        "snippet": "joined",
        "note": "test",
    }]


@pytest.fixture
def fake_wiki(monkeypatch):
    calls = {}

    async def summary(title, **kw):
        calls["summary"] = title
        calls.setdefault("clients", []).append(kw.get("client"))
        if title == "Missing Page":
            return None
        return WikiSummary(
            extract="Ada Lovelace was an English mathematician.",
            url="https://en.wikipedia.org/wiki/Ada_Lovelace",
            image_url="https://upload.wikimedia.org/ada.jpg",
            wikidata_id="Q7259",
        )

    async def full_text(title, **kw):
        calls.setdefault("clients", []).append(kw.get("client"))
        return (
            "Early life\n"
            "In 1835 she married William King.\n"
            "She studied mathematics with Augustus De Morgan from 1840.\n"
            "No year on this line, though she studied a lot.\n"
        )

    async def dob(wikidata_id, **kw):
        calls.setdefault("clients", []).append(kw.get("client"))
        assert wikidata_id == "Q7259"
        return "1815-12-10"

    monkeypatch.setattr(resolver_mod, "get_wikipedia_summary", summary)
    monkeypatch.setattr(resolver_mod, "get_wikipedia_full_text", full_text)
    monkeypatch.setattr(resolver_mod, "get_wikidata_dob", dob)
    return calls


@pytest.mark.asyncio
async def test_create_from_encyclopedia_candidate(store, fake_wiki):
    result = await PersonResolver(store, []).create_from_candidate("Ada Lovelace", SourceType.ENCYCLOPEDIA)

    assert result.status == "created"
    profile = result.profiles[0]
    assert profile.summary == "Ada Lovelace was an English mathematician."
    assert profile.hero_image_url == "https://upload.wikimedia.org/ada.jpg"

    assert result.events == store.list_events(profile.id)
    events = store.list_events(profile.id)
    assert [(e.date, e.categories) for e in events] == [
        ("1815-12-10", ["birth"]),
        ("1835-01-01", ["personal"]),
        ("1840-01-01", ["education"]),
    ]
    assert events[0].event_text == "Birth of Ada Lovelace"
    assert all(e.source_url == "https://en.wikipedia.org/wiki/Ada_Lovelace" for e in events)

    prov = read_store(store.path)["provenance"]
    assert len(prov) == 3
    assert {p["note"] for p in prov} == {"Extracted from Wikipedia full text for Ada Lovelace"}


@pytest.mark.asyncio
async def test_create_from_encyclopedia_without_summary(store, fake_wiki):
    result = await PersonResolver(store, []).create_from_candidate("Missing Page", "encyclopedia")
    assert result.status == "not_found"
    assert not store.path.exists()


@pytest.mark.asyncio
async def test_create_from_web_candidate(store):
    result = await PersonResolver(store, []).create_from_candidate("Jane Doe", "linkedin")
    assert result.status == "created"
    assert result.profiles[0].summary == "Profile information for Jane Doe from linkedin"
    assert result.insert_outcomes == []


@pytest.mark.asyncio
async def test_create_reuses_existing(store, fake_wiki):
    existing_id = store.insert_identity("Ada Lovelace", "Stored earlier")
    result = await PersonResolver(store, []).create_from_candidate("Ada Lovelace", SourceType.ENCYCLOPEDIA)
    assert result.status == "existing"
    assert result.profiles[0].id == existing_id
    assert "summary" not in fake_wiki


@pytest.mark.asyncio
async def test_create_requires_title(store):
    with pytest.raises(InvalidQueryError):
        await PersonResolver(store, []).create_from_candidate("  ")


def test_provenance_failure_keeps_event_outcome(tmp_path):
    store = NoProvenanceStore(tmp_path / "profiles.json")
    pid = store.insert_identity("Jane Doe", "Engineer.")
    events = [RawEvent(
        date="2001-01-01",
        event_text="Joined Acme",
        categories=["career"],
        source_url="https://acme.example/jane",
        source_snippet="joined",
    )]

    outcomes = insert_events(store, pid, events)

    stored = store.list_events(pid)
    assert len(stored) == 1
    assert outcomes[0].ok
    assert outcomes[0].event_id == stored[0].id
    assert outcomes[0].error is None
    assert "provenance table locked" in outcomes[0].provenance_error


@pytest.mark.asyncio
async def test_created_result_carries_stored_events(store):
    result = await PersonResolver(store, [], lookup=lambda q: ada()).resolve("Ada Lovelace")
    assert [e.event_text for e in result.events] == ["Born in London", "Published the Notes"]
    assert all(e.person_id == result.profiles[0].id for e in result.events)


@pytest.mark.asyncio
async def test_create_uses_the_resolver_http_client(store, fake_wiki):
    async with httpx.AsyncClient() as client:
        await PersonResolver(store, [], client=client).create_from_candidate("Ada Lovelace", "encyclopedia")
    assert fake_wiki["clients"] == [client, client, client]


@pytest.mark.asyncio
async def test_damaged_store_row_is_a_storage_error(tmp_path):
    path = tmp_path / "profiles.json"
    path.write_text('{"profiles": [{"id": 1, "name": null}]}', encoding="utf-8")
    with pytest.raises(StorageError):
        await PersonResolver(JsonFileStore(path), [], lookup=no_lookup).resolve("Jane Doe")
