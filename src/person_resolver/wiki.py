from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .fetcher import fetch_json

WIKIPEDIA_API = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_REST = "https://en.wikipedia.org/api/rest_v1/page/summary/"
WIKIDATA_ENTITY = "https://www.wikidata.org/wiki/Special:EntityData/{id}.json"

_TAG_RE = re.compile(r"<[^>]+>")
_DOB_RE = re.compile(r"([+-]?\d{4}-\d{2}-\d{2})")


@dataclass(frozen=True)
class WikiSummary:
    extract: str
    url: str
    image_url: Optional[str] = None
    wikidata_id: Optional[str] = None


def article_url(title: str) -> str:
    return "https://en.wikipedia.org/wiki/" + quote(title.replace(" ", "_"), safe="")


def strip_html(s: str) -> str:
    return _TAG_RE.sub("", s or "")


async def search_wikipedia(
    query: str,
    *,
    limit: int = 6,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """Raw `list=search` hits; [] on any failure or unexpected shape."""
    params = {
        "action": "query",
        "list": "search",
        "format": "json",
        "srlimit": limit,
        "srsearch": query,
    }
    data = await fetch_json(WIKIPEDIA_API, params=params, client=client)
    if not isinstance(data, dict):
        return []
    q = data.get("query")
    hits = q.get("search") if isinstance(q, dict) else None
    if not isinstance(hits, list):
        return []
    return [h for h in hits if isinstance(h, dict)]


async def get_wikipedia_summary(title: str, *, client: Optional[httpx.AsyncClient] = None) -> Optional[WikiSummary]:
    data = await fetch_json(WIKIPEDIA_REST + quote(title.replace(" ", "_"), safe=""), client=client)
    if not isinstance(data, dict):
        return None

    url = article_url(title)
    urls = data.get("content_urls")
    if isinstance(urls, dict) and isinstance(urls.get("desktop"), dict):
        page = urls["desktop"].get("page")
        if isinstance(page, str) and page:
            url = page

    thumb = data.get("thumbnail")
    image = thumb.get("source") if isinstance(thumb, dict) else None
    item = data.get("wikibase_item")
    extract = data.get("extract")

    return WikiSummary(
        extract=extract if isinstance(extract, str) else "",
        url=url,
        image_url=image if isinstance(image, str) else None,
        wikidata_id=item if isinstance(item, str) else None,
    )


async def get_wikipedia_full_text(title: str, *, client: Optional[httpx.AsyncClient] = None) -> Optional[str]:
    params = {
        "action": "query",
        "format": "json",
        "prop": "extracts",
        "explaintext": "true",
        "titles": title,
    }
    data = await fetch_json(WIKIPEDIA_API, params=params, client=client)
    if not isinstance(data, dict):
        return None
    q = data.get("query")
    pages = q.get("pages") if isinstance(q, dict) else None
    if not isinstance(pages, dict) or not pages:
        return None
    page = next(iter(pages.values()))
    text = page.get("extract") if isinstance(page, dict) else None
    return text if isinstance(text, str) and text else None


async def _wikidata_entity(wikidata_id: str, client: Optional[httpx.AsyncClient]) -> Optional[Dict[str, Any]]:
    data = await fetch_json(WIKIDATA_ENTITY.format(id=quote(wikidata_id, safe="")), client=client)
    if not isinstance(data, dict):
        return None
    entities = data.get("entities")
    entity = entities.get(wikidata_id) if isinstance(entities, dict) else None
    return entity if isinstance(entity, dict) else None


def _claims(entity: Dict[str, Any], prop: str) -> List[Dict[str, Any]]:
    claims = entity.get("claims")
    items = claims.get(prop) if isinstance(claims, dict) else None
    return [c for c in items if isinstance(c, dict)] if isinstance(items, list) else []


def _datavalue(claim: Dict[str, Any]) -> Any:
    snak = claim.get("mainsnak")
    dv = snak.get("datavalue") if isinstance(snak, dict) else None
    return dv.get("value") if isinstance(dv, dict) else None


async def get_wikidata_dob(wikidata_id: str, *, client: Optional[httpx.AsyncClient] = None) -> Optional[str]:
    """P569 date of birth, '+1972-06-10T00:00:00Z' -> '1972-06-10'."""
    entity = await _wikidata_entity(wikidata_id, client)
    if entity is None:
        return None
    claims = _claims(entity, "P569")
    if not claims:
        return None
    value = _datavalue(claims[0])
    t = value.get("time") if isinstance(value, dict) else None
    if not isinstance(t, str):
        return None
    m = _DOB_RE.search(t)
    if not m:
        return None
    iso = m.group(1).lstrip("+")
    # "-0100-00-00" style dates and unknown month/day are not usable
    if iso.startswith("-") or iso.endswith("-00") or "-00-" in iso:
        return None
    return iso


async def get_wikidata_is_human(wikidata_id: str, *, client: Optional[httpx.AsyncClient] = None) -> bool:
    entity = await _wikidata_entity(wikidata_id, client)
    if entity is None:
        return False
    for claim in _claims(entity, "P31"):
        value = _datavalue(claim)
        if isinstance(value, dict) and value.get("id") == "Q5":
            return True
    return False
