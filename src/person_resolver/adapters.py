from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from .config import AppConfig, env_key, load_env
from .fetcher import fetch_json
from .models import Candidate, SourceType, similarity_for_rank
from .query_pack import build_query_pack
from .serpapi_client import fetch_serp_organic_results, serpapi_configured
from .whitelist import ProfileUrlRule, host_from_url, match_profile_rule
from .wiki import article_url, search_wikipedia, strip_html

logger = logging.getLogger(__name__)

SerpFetcher = Callable[..., List[Dict[str, Any]]]

_TITLE_SUFFIX_RE = re.compile(r"\s-\s.*$")
_WIKI_DISALLOWED_RE = re.compile(
    r"(discography|election|album|film|soundtrack|season|episode|legislative|list of)", re.IGNORECASE
)
_YOUTUBE_ABOUT_PERSON = ("interview", "biography", "documentary", "profile")
_YOUTUBE_MEDIA_TERMS = ("tv", "channel", "show", "news", "media", "network")

YOUTUBE_SEARCH_API = "https://www.googleapis.com/youtube/v3/search"


def mentions_query(query: str, *texts: str) -> bool:
    q = query.strip().lower()
    return bool(q) and any(q in (t or "").lower() for t in texts)


def display_name_from_title(title: str) -> str:
    # "Jane Doe - Software Engineer - Acme | LinkedIn" -> "Jane Doe"
    return _TITLE_SUFFIX_RE.sub("", title or "").strip()


class SourceAdapter(ABC):
    """
    One external source. search() never raises: a missing credential, an
    unreachable endpoint or an unexpected payload all give [].
    """

    name: str = "base"
    source_type: SourceType = SourceType.WEB

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def _search(self, query: str) -> List[Candidate]:
        """Source-specific lookup; may raise."""

    async def search(self, query: str) -> List[Candidate]:
        if not self.is_configured():
            logger.info("%s: credentials not configured - skipping", self.name)
            return []
        try:
            found = await self._search(query)
        except Exception as e:
            logger.warning("%s: search failed: %s: %s", self.name, type(e).__name__, e)
            return []

        # source_url is unique within one adapter's result set
        seen = set()
        out: List[Candidate] = []
        for c in found:
            if c.source_url in seen:
                continue
            seen.add(c.source_url)
            out.append(c)
        return out


class WikipediaAdapter(SourceAdapter):
    name = "wikipedia"
    source_type = SourceType.ENCYCLOPEDIA

    def __init__(self, *, limit: int = 6, client: Optional[httpx.AsyncClient] = None) -> None:
        self.limit = limit
        self.client = client

    @staticmethod
    def _is_person_title(title: str, first_token: str) -> bool:
        if _WIKI_DISALLOWED_RE.search(title):
            return False
        words = re.split(r"[^a-z0-9]+", title.lower())
        return first_token in words

    async def _search(self, query: str) -> List[Candidate]:
        tokens = query.strip().lower().split()
        if not tokens:
            return []
        first_token = tokens[0]

        hits = await search_wikipedia(query, limit=self.limit, client=self.client)
        out: List[Candidate] = []
        for idx, h in enumerate(hits):
            title = h.get("title")
            if not isinstance(title, str) or not title.strip():
                continue
            if h.get("ns", 0) != 0 or not self._is_person_title(title, first_token):
                continue
            snippet = h.get("snippet")
            out.append(
                Candidate(
                    name=title,
                    descriptor="Wikipedia",
                    source_url=article_url(title),
                    snippet=strip_html(snippet) if isinstance(snippet, str) else "",
                    similarity_score=similarity_for_rank(idx),
                    source_type=SourceType.ENCYCLOPEDIA,
                    verified=True,
                    confidence=0.9,
                )
            )
        return out


class SerpProfileAdapter(SourceAdapter):
    """
    Profile search on the web through SerpAPI Google results.

    Sub-queries run serially; a result is kept only when its URL matches
    one of the adapter's profile rules and the query text appears in the
    title or snippet. A failing sub-query is logged and skipped.
    """

    def __init__(
        self,
        name: str,
        rules: Sequence[ProfileUrlRule],
        *,
        confidence: float,
        descriptor: Optional[str] = None,
        num: int = 5,
        gl: str = "us",
        hl: str = "en",
        fetcher: Optional[SerpFetcher] = None,
    ) -> None:
        self.name = name
        self.rules = tuple(rules)
        types = {r.source_type for r in self.rules}
        self.source_type = types.pop() if len(types) == 1 else SourceType.WEB
        self.confidence = confidence
        self.descriptor = descriptor
        self.num = num
        self.gl = gl
        self.hl = hl
        self.fetcher = fetcher or fetch_serp_organic_results

    def is_configured(self) -> bool:
        # an injected fetcher brings its own credentials
        return self.fetcher is not fetch_serp_organic_results or serpapi_configured()

    def _to_candidate(self, query: str, item: Dict[str, Any], rank_index: int) -> Optional[Candidate]:
        url = item.get("link")
        title = item.get("title")
        snippet = item.get("snippet")
        if not isinstance(url, str) or not url.strip():
            return None
        title = title if isinstance(title, str) else ""
        snippet = snippet if isinstance(snippet, str) else ""

        rule = match_profile_rule(url, self.rules)
        if rule is None or not mentions_query(query, title, snippet):
            return None

        name = display_name_from_title(title)
        if not name:
            return None
        return Candidate(
            name=name,
            descriptor=self.descriptor or host_from_url(url) or "",
            source_url=url.strip(),
            snippet=snippet,
            similarity_score=similarity_for_rank(rank_index),
            source_type=rule.source_type,
            verified=False,
            confidence=self.confidence,
        )

    async def _search(self, query: str) -> List[Candidate]:
        out: List[Candidate] = []
        for q in build_query_pack(self.name, query):
            try:
                items = await asyncio.to_thread(self.fetcher, q, gl=self.gl, hl=self.hl, num=self.num)
            except Exception as e:
                logger.warning("%s: sub-query %r failed: %s: %s", self.name, q, type(e).__name__, e)
                continue
            if not isinstance(items, list):
                continue
            for idx, item in enumerate(items):
                if not isinstance(item, dict):
                    continue
                c = self._to_candidate(query, item, idx)
                if c is not None:
                    out.append(c)
        return out


def youtube_api_key() -> str:
    load_env()
    return env_key("YOUTUBE_API_KEY")


class YouTubeAdapter(SourceAdapter):
    """Interview/biography videos about the person (not channels)."""

    name = "youtube"
    source_type = SourceType.YOUTUBE

    def __init__(
        self,
        *,
        max_results: int = 10,
        keep: int = 3,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.max_results = max_results
        self.keep = keep
        self.api_key = api_key
        self.client = client

    def _key(self) -> str:
        return self.api_key if self.api_key is not None else youtube_api_key()

    def is_configured(self) -> bool:
        return bool(self._key())

    @staticmethod
    def _is_about_person(query: str, title: str, description: str) -> bool:
        t = title.lower()
        d = description.lower()
        if not mentions_query(query, title, description):
            return False
        if not (any(w in t for w in _YOUTUBE_ABOUT_PERSON) or "interview" in d or "biography" in d):
            return False
        return not any(w in t for w in _YOUTUBE_MEDIA_TERMS)

    async def _search(self, query: str) -> List[Candidate]:
        params = {
            "part": "snippet",
            "q": f"{query} interview biography documentary",
            "type": "video",
            "maxResults": self.max_results,
            "key": self._key(),
        }
        data = await fetch_json(YOUTUBE_SEARCH_API, params=params, client=self.client)
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            return []

        kept: List[Dict[str, Any]] = []
        for item in data["items"]:
            if not isinstance(item, dict):
                continue
            sn = item.get("snippet")
            vid = item.get("id")
            if not isinstance(sn, dict) or not isinstance(vid, dict):
                continue
            video_id = vid.get("videoId")
            title = sn.get("title")
            description = sn.get("description")
            if not isinstance(video_id, str) or not isinstance(title, str):
                continue
            description = description if isinstance(description, str) else ""
            if self._is_about_person(query, title, description):
                kept.append({"video_id": video_id, "title": title, "snippet": sn})

        out: List[Candidate] = []
        for idx, v in enumerate(kept[: self.keep]):
            thumbs = v["snippet"].get("thumbnails")
            default = thumbs.get("default") if isinstance(thumbs, dict) else None
            image = default.get("url") if isinstance(default, dict) else None
            out.append(
                Candidate(
                    name=query.strip(),
                    descriptor="YouTube Video",
                    source_url=f"https://youtube.com/watch?v={v['video_id']}",
                    snippet=v["title"],
                    similarity_score=similarity_for_rank(idx),
                    source_type=SourceType.YOUTUBE,
                    profile_image=image if isinstance(image, str) else None,
                    verified=False,
                    confidence=0.5,
                )
            )
        return out


def build_default_adapters(
    cfg: AppConfig,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[SourceAdapter]:
    """The fixed adapter set, encyclopedia first."""
    s = cfg.search_settings
    gl = str(s.get("gl", "us"))
    hl = str(s.get("hl", "en"))
    social_num = int(s.get("social_num", 5))
    rules = cfg.profile_rules()

    return [
        WikipediaAdapter(limit=int(s.get("wikipedia_limit", 6)), client=client),
        SerpProfileAdapter(
            "facebook", rules.rules_for("facebook"),
            confidence=0.7, descriptor="Facebook Profile", num=social_num, gl=gl, hl=hl,
        ),
        SerpProfileAdapter(
            "web", rules.rules_for("web"),
            confidence=0.7, num=int(s.get("web_num", 3)), gl=gl, hl=hl,
        ),
        YouTubeAdapter(max_results=int(s.get("youtube_max_results", 10)), client=client),
        SerpProfileAdapter(
            "linkedin", rules.rules_for("linkedin"),
            confidence=0.8, descriptor="LinkedIn Profile", num=social_num, gl=gl, hl=hl,
        ),
        SerpProfileAdapter(
            "instagram", rules.rules_for("instagram"),
            confidence=0.7, descriptor="Instagram Profile", num=social_num, gl=gl, hl=hl,
        ),
    ]
