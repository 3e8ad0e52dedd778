from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .events import EVENT_CATEGORIES, TimelineEvent


YEAR_PATTERN = re.compile(r"(\d{4})")

DEFAULT_CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("education", ("graduated", "degree", "university", "college", "studied")),
    ("career", ("joined", "founded", "started", "became", "appointed", "ceo", "director", "president")),
    ("award", ("award", "honor", "recognition", "prize", "medal")),
    ("personal", ("married", "birth", "death", "retired")),
)


@dataclass(frozen=True)
class TimelineRules:
    """
    Keyword table and limits for the line-oriented timeline scan.
    Category order decides the order of events emitted for one line.
    """
    category_keywords: Tuple[Tuple[str, Tuple[str, ...]], ...] = DEFAULT_CATEGORY_KEYWORDS
    confidence: float = 0.8
    max_events: int = 10
    snippet_chars: int = 100

    @staticmethod
    def from_config(
        keywords: Optional[Dict[str, Any]] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> "TimelineRules":
        settings = settings or {}
        table = DEFAULT_CATEGORY_KEYWORDS
        if isinstance(keywords, dict) and keywords:
            rows = []
            for cat, words in keywords.items():
                cat = str(cat).strip().lower()
                if cat not in EVENT_CATEGORIES or not isinstance(words, list):
                    raise ValueError(f"invalid timeline keyword entry: {cat!r}")
                rows.append((cat, tuple(str(w).strip().lower() for w in words if str(w).strip())))
            table = tuple(rows)
        return TimelineRules(
            category_keywords=table,
            confidence=float(settings.get("confidence", 0.8)),
            max_events=int(settings.get("max_events", 10)),
            snippet_chars=int(settings.get("snippet_chars", 100)),
        )

    def categories_for(self, line: str) -> List[str]:
        t = line.lower()
        return [cat for cat, words in self.category_keywords if any(w in t for w in words)]


DEFAULT_TIMELINE_RULES = TimelineRules()


def _extract_line_windows(text: str) -> List[str]:
    return [ln.strip() for ln in text.splitlines() if ln.strip()]


def extract_timeline_events(
    full_text: str,
    person_name: str,
    rules: Optional[TimelineRules] = None,
    *,
    source_url: Optional[str] = None,
) -> List[TimelineEvent]:
    """
    Line-by-line scan of biographical prose.

    A line needs a 4-digit year; every keyword category it hits becomes its
    own event dated <year>-01-01. Stops at rules.max_events, document order.
    person_name is accepted for symmetry with the other creation paths; the
    heuristic does not use it.
    """
    rules = rules or DEFAULT_TIMELINE_RULES
    events: List[TimelineEvent] = []
    if not full_text or rules.max_events <= 0:
        return events

    for ln in _extract_line_windows(full_text):
        m = YEAR_PATTERN.search(ln)
        if not m:
            continue
        year = m.group(1)

        for cat in rules.categories_for(ln):
            events.append(
                TimelineEvent(
                    date=f"{year}-01-01",
                    event_text=ln,
                    categories=[cat],
                    source_snippet=ln[: rules.snippet_chars],
                    confidence=rules.confidence,
                    source_url=source_url,
                )
            )
            if len(events) >= rules.max_events:
                return events

    return events


def birth_event(person_name: str, dob_iso: str, source_url: Optional[str] = None) -> TimelineEvent:
    return TimelineEvent(
        date=dob_iso,
        event_text=f"Birth of {person_name}",
        categories=["birth"],
        source_snippet="Date of birth per Wikidata",
        confidence=0.9,
        source_url=source_url,
    )


def store_events(out_path: Path, events: List[TimelineEvent]) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps([e.model_dump() for e in events], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return out_path
