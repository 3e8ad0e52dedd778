import json

import pytest

from person_resolver.event_extractor import (
    TimelineRules,
    birth_event,
    extract_timeline_events,
    store_events,
)


def test_single_education_line():
    events = extract_timeline_events("In 1998 she graduated from State University.", "Jane Doe")
    assert len(events) == 1
    ev = events[0]
    assert ev.categories == ["education"]
    assert ev.date == "1998-01-01"
    assert ev.confidence == 0.8
    assert ev.event_text == "In 1998 she graduated from State University."


def test_line_without_year_is_skipped():
    assert extract_timeline_events("She studied mathematics.", "Jane Doe") == []


def test_one_event_per_matching_category():
    events = extract_timeline_events(
        "In 2005 he joined Acme as director and received the Turing Award.", "John Roe"
    )
    assert [e.categories for e in events] == [["career"], ["award"]]
    assert all(e.date == "2005-01-01" for e in events)


def test_bounded_to_ten_in_document_order():
    text = "\n".join(f"In {1900 + i} she graduated again." for i in range(25))
    events = extract_timeline_events(text, "Jane Doe")
    assert len(events) == 10
    assert [e.date for e in events] == [f"{1900 + i}-01-01" for i in range(10)]


def test_snippet_is_bounded():
    line = "In 1990 she founded " + "a very large company " * 20
    events = extract_timeline_events(line, "Jane Doe")
    assert events
    assert len(events[0].source_snippet) == 100


def test_empty_text():
    assert extract_timeline_events("", "Jane Doe") == []


def test_configured_rules():
    rules = TimelineRules.from_config(
        keywords={"role": ["elected"]},
        settings={"confidence": 0.6, "max_events": 1},
    )
    events = extract_timeline_events("She was elected in 2010.\nElected again in 2014.", "Jane Doe", rules)
    assert len(events) == 1
    assert events[0].categories == ["role"]
    assert events[0].confidence == 0.6


def test_configured_rules_reject_unknown_category():
    with pytest.raises(ValueError):
        TimelineRules.from_config(keywords={"hobby": ["chess"]})


def test_birth_event():
    ev = birth_event("Ada Lovelace", "1815-12-10", "https://en.wikipedia.org/wiki/Ada_Lovelace")
    assert ev.event_text == "Birth of Ada Lovelace"
    assert ev.categories == ["birth"]
    assert ev.confidence == 0.9


def test_store_events_writes_json(tmp_path):
    events = extract_timeline_events("In 1998 she graduated.", "Jane Doe")
    out = store_events(tmp_path / "out" / "events.json", events)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data[0]["date"] == "1998-01-01"
