from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from .errors import StorageError
from .models import StoredEvent, StoredIdentity, utc_now_iso

logger = logging.getLogger(__name__)


def normalize_stored_name(name: str) -> str:
    # case- and space-insensitive key used for duplicate avoidance
    return (name or "").lower().replace(" ", "")


@runtime_checkable
class IdentityStore(Protocol):
    def find_by_fuzzy_name_or_summary(self, query: str, limit: int = 10) -> List[StoredIdentity]:
        ...

    def find_by_exact_normalized_name(self, name: str) -> Optional[StoredIdentity]:
        ...

    def insert_identity(self, name: str, summary: str, hero_image_url: Optional[str] = None) -> int:
        ...

    def insert_event(
        self,
        identity_id: int,
        date: str,
        text: str,
        categories: List[str],
        source_url: Optional[str] = None,
        source_snippet: Optional[str] = None,
        confidence: float = 0.9,
    ) -> int:
        ...

    def insert_provenance(self, event_id: int, url: str, snippet: str, note: Optional[str] = None) -> int:
        ...

    def get_identity(self, identity_id: int) -> Optional[StoredIdentity]:
        ...

    def list_events(self, identity_id: int) -> List[StoredEvent]:
        ...


class JsonFileStore:
    """
    Profiles, events and provenance kept in one JSON document:
      {"profiles": [...], "events": [...], "provenance": [...]}
    Ids are per-table integers starting at 1. Every call reads the file and
    every write rewrites it; a missing file is an empty store.
    """

    TABLES = ("profiles", "events", "provenance")

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.path.exists():
            return {t: [] for t in self.TABLES}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"cannot read store {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"store {self.path} is not a JSON object")
        data: Dict[str, List[Dict[str, Any]]] = {}
        for t in self.TABLES:
            rows = raw.get(t)
            if rows is None:
                rows = []
            if not isinstance(rows, list):
                raise StorageError(f"store {self.path}: table {t!r} is not a list")
            if not all(isinstance(r, dict) for r in rows):
                raise StorageError(f"store {self.path}: table {t!r} holds a non-object row")
            data[t] = rows
        self._check_rows(data)
        return data

    def _check_rows(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        # every later read relies on integer ids and model-shaped rows
        try:
            for r in data["profiles"]:
                StoredIdentity.model_validate(r)
            for r in data["events"]:
                StoredEvent.model_validate(r)
            for r in data["provenance"]:
                int(r["id"])
                int(r["event_id"])
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"store {self.path} has a damaged row: {e}") from e

    def _save(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise StorageError(f"cannot write store {self.path}: {e}") from e

    def _insert(self, table: str, row: Dict[str, Any]) -> int:
        with self._lock:
            data = self._load()
            rows = data[table]
            new_id = max((int(r.get("id", 0)) for r in rows), default=0) + 1
            rows.append({"id": new_id, **row})
            self._save(data)
        return new_id

    def find_by_fuzzy_name_or_summary(self, query: str, limit: int = 10) -> List[StoredIdentity]:
        q = (query or "").lower()
        rows = self._load()["profiles"]
        hits = [
            r for r in rows
            if q in str(r.get("name", "")).lower() or q in str(r.get("summary", "")).lower()
        ]
        # newest first
        hits.sort(key=lambda r: (str(r.get("created_at", "")), int(r.get("id", 0))), reverse=True)
        return [StoredIdentity.model_validate(r) for r in hits[:limit]]

    def find_by_exact_normalized_name(self, name: str) -> Optional[StoredIdentity]:
        key = normalize_stored_name(name)
        for r in self._load()["profiles"]:
            if normalize_stored_name(str(r.get("name", ""))) == key:
                return StoredIdentity.model_validate(r)
        return None

    def insert_identity(self, name: str, summary: str, hero_image_url: Optional[str] = None) -> int:
        new_id = self._insert("profiles", {
            "name": name,
            "summary": summary,
            "hero_image_url": hero_image_url or None,
            "created_at": utc_now_iso(),
        })
        logger.info("profile inserted id=%d name=%s", new_id, name)
        return new_id

    def insert_event(
        self,
        identity_id: int,
        date: str,
        text: str,
        categories: List[str],
        source_url: Optional[str] = None,
        source_snippet: Optional[str] = None,
        confidence: float = 0.9,
    ) -> int:
        return self._insert("events", {
            "person_id": int(identity_id),
            "date": date,
            "event_text": text,
            "categories": list(categories),
            "source_url": source_url or None,
            "source_snippet": source_snippet or None,
            "confidence": float(confidence),
        })

    def insert_provenance(self, event_id: int, url: str, snippet: str, note: Optional[str] = None) -> int:
        return self._insert("provenance", {
            "event_id": int(event_id),
            "url": url,
            "fetch_time": utc_now_iso(),
            "snippet": snippet,
            "note": note or None,
        })

    def get_identity(self, identity_id: int) -> Optional[StoredIdentity]:
        for r in self._load()["profiles"]:
            if int(r.get("id", 0)) == int(identity_id):
                return StoredIdentity.model_validate(r)
        return None

    def list_events(self, identity_id: int) -> List[StoredEvent]:
        rows = [r for r in self._load()["events"] if int(r.get("person_id", 0)) == int(identity_id)]
        rows.sort(key=lambda r: str(r.get("date", "")))
        return [StoredEvent.model_validate(r) for r in rows]
