from __future__ import annotations

from typing import Any, Dict, List

from serpapi import GoogleSearch

from .config import env_key, load_env


class MissingCredentialError(RuntimeError):
    pass


def serpapi_key() -> str:
    load_env()
    k = env_key("SERPAPI_API_KEY")
    if not k:
        raise MissingCredentialError("Missing SERPAPI_API_KEY in .env")
    return k


def serpapi_configured() -> bool:
    load_env()
    return bool(env_key("SERPAPI_API_KEY"))


def fetch_serp_response(
    query: str,
    *,
    engine: str = "google",
    gl: str = "us",
    hl: str = "en",
    num: int = 10,
) -> Dict[str, Any]:
    """
    Explicit query -> raw SerpAPI dict. Raises on missing key; network and
    API errors surface from the serpapi client.
    """
    params = {
        "engine": engine,
        "q": str(query),
        "gl": gl,
        "hl": hl,
        "num": num,
        "api_key": serpapi_key(),
    }
    return GoogleSearch(params).get_dict()


def fetch_serp_organic_results(
    query: str, *, engine: str = "google", gl: str = "us", hl: str = "en", num: int = 10
) -> List[Dict[str, Any]]:
    """
    Organic results normalized to dicts with keys:
      title, link, snippet, position
    Items that are not dicts or lack a link are dropped; result order is kept.
    """
    data = fetch_serp_response(query, engine=engine, gl=gl, hl=hl, num=num)
    if not isinstance(data, dict):
        return []
    if data.get("error"):
        # SerpAPI reports quota/auth problems in-band
        raise RuntimeError(f"SerpAPI error: {data.get('error')}")

    organic = data.get("organic_results") or []
    if not isinstance(organic, list):
        return []

    out: List[Dict[str, Any]] = []
    for i, r in enumerate(organic):
        if not isinstance(r, dict):
            continue
        link = r.get("link")
        if not isinstance(link, str) or not link.strip():
            continue
        title = r.get("title")
        snippet = r.get("snippet")
        out.append({
            "title": title if isinstance(title, str) else "",
            "link": link.strip(),
            "snippet": snippet if isinstance(snippet, str) else "",
            "position": r.get("position") or (i + 1),
        })
    return out
