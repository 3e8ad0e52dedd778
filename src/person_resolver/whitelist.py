from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import idna

from .models import SourceType


@dataclass(frozen=True)
class ProfileUrlRule:
    """
    Accepts URLs that look like an individual's profile on one host.

    domain: exact host (after www./punycode normalization); with subdomains=True
            any host ending in ".<domain>" also matches.
    url_contains: alternative to domain, plain substring test on the URL.
    path_prefix: required path start, e.g. "/in/" for LinkedIn.
    excluded_paths: path fragments that mark non-profile pages (posts, media).
    """
    source_type: SourceType
    domain: str = ""
    subdomains: bool = False
    url_contains: str = ""
    path_prefix: str = ""
    excluded_paths: Tuple[str, ...] = ()

    @staticmethod
    def from_config(raw: Dict[str, Any]) -> "ProfileUrlRule":
        return ProfileUrlRule(
            source_type=SourceType(str(raw.get("source_type", "web")).strip().lower()),
            domain=str(raw.get("domain") or "").strip().lower().rstrip("."),
            subdomains=bool(raw.get("subdomains", False)),
            url_contains=str(raw.get("url_contains") or "").strip().lower(),
            path_prefix=str(raw.get("path_prefix") or ""),
            excluded_paths=tuple(str(p) for p in (raw.get("excluded_paths") or []) if str(p).strip()),
        )

    def matches(self, url: str) -> bool:
        host = host_from_url(url)
        if not host:
            return False

        if self.domain:
            if not is_domain_allowed(host, self.domain, self.subdomains):
                return False
        elif self.url_contains:
            if self.url_contains not in url.lower():
                return False
        else:
            return False

        path = _path_from_url(url)
        if self.path_prefix and not path.startswith(self.path_prefix):
            return False
        if any(x in path for x in self.excluded_paths):
            return False
        return True


_SOCIAL_EXCLUDED = ("/posts/", "/photos/", "/videos/")
_INSTAGRAM_EXCLUDED = ("/p/", "/reel/", "/tv/")

FACEBOOK_RULES: Tuple[ProfileUrlRule, ...] = (
    ProfileUrlRule(SourceType.FACEBOOK, domain="facebook.com", subdomains=True, excluded_paths=_SOCIAL_EXCLUDED),
)

LINKEDIN_RULES: Tuple[ProfileUrlRule, ...] = (
    ProfileUrlRule(SourceType.LINKEDIN, domain="linkedin.com", subdomains=True, path_prefix="/in/"),
)

INSTAGRAM_RULES: Tuple[ProfileUrlRule, ...] = (
    ProfileUrlRule(SourceType.INSTAGRAM, domain="instagram.com", excluded_paths=_INSTAGRAM_EXCLUDED),
)

# Order matters: the first matching rule decides the source type.
WEB_PROFILE_RULES: Tuple[ProfileUrlRule, ...] = (
    ProfileUrlRule(SourceType.GITHUB, domain="github.com"),
    ProfileUrlRule(SourceType.GEEKSFORGEEKS, domain="geeksforgeeks.org", subdomains=True),
    ProfileUrlRule(SourceType.TWITTER, domain="twitter.com"),
    ProfileUrlRule(SourceType.TWITTER, domain="x.com"),
    ProfileUrlRule(SourceType.MEDIUM, domain="medium.com", path_prefix="/@"),
    ProfileUrlRule(SourceType.DEVTO, domain="dev.to"),
    ProfileUrlRule(SourceType.STACKOVERFLOW, domain="stackoverflow.com"),
    ProfileUrlRule(SourceType.QUORA, domain="quora.com"),
    ProfileUrlRule(SourceType.BEHANCE, domain="behance.net"),
    ProfileUrlRule(SourceType.DRIBBBLE, domain="dribbble.com"),
    ProfileUrlRule(SourceType.ABOUTME, domain="about.me"),
    ProfileUrlRule(SourceType.EDUCATION, domain="edu", subdomains=True),
    ProfileUrlRule(SourceType.EDUCATION, domain="edu.in", subdomains=True),
    ProfileUrlRule(SourceType.EDUCATION, domain="ac.in", subdomains=True),
    ProfileUrlRule(SourceType.WEB, domain="en.wikipedia.org", path_prefix="/wiki/"),
    ProfileUrlRule(SourceType.PORTFOLIO, url_contains="portfolio"),
)


def rules_from_config(items: Iterable[Dict[str, Any]]) -> Tuple[ProfileUrlRule, ...]:
    return tuple(ProfileUrlRule.from_config(it) for it in items if isinstance(it, dict))


def _normalize_host(host: str) -> str:
    host = host.strip().lower()
    if host.startswith("www."):
        host = host[4:]
    # Convert unicode domains to ASCII punycode for consistent matching
    try:
        host = idna.encode(host).decode("ascii")
    except UnicodeError:
        pass
    return host


def host_from_url(url: str) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None
    u = url.strip()
    # urlparse needs scheme to parse netloc reliably
    if "://" not in u:
        u = "http://" + u
    p = urlparse(u)
    if not p.netloc:
        return None
    host = p.hostname or ""
    host = _normalize_host(host)
    return host or None


def _path_from_url(url: str) -> str:
    u = url.strip()
    if "://" not in u:
        u = "http://" + u
    return urlparse(u).path or "/"


def is_domain_allowed(host: str, domain: str, subdomains: bool = False) -> bool:
    """
    Exact-domain matching by default.
    Subdomain matching only when the rule asks for it.

    Examples:
      - host = "github.com" allowed for domain "github.com"
      - host = "cs.stanford.edu" allowed for domain "edu" with subdomains=True
    """
    if not host or not domain:
        return False

    host = _normalize_host(host)
    domain = _normalize_host(domain)

    if host == domain:
        return True
    if subdomains and host.endswith("." + domain):
        return True
    return False


def match_profile_rule(url: str, rules: Sequence[ProfileUrlRule]) -> Optional[ProfileUrlRule]:
    for rule in rules:
        if rule.matches(url):
            return rule
    return None


@dataclass(frozen=True)
class ProfileRuleSet:
    """Profile URL rules per SERP-backed adapter name."""
    by_adapter: Dict[str, Tuple[ProfileUrlRule, ...]] = field(default_factory=dict)

    def rules_for(self, adapter_name: str) -> Tuple[ProfileUrlRule, ...]:
        return self.by_adapter.get(adapter_name, ())

    def classify(self, url: str) -> List[Tuple[str, ProfileUrlRule]]:
        out: List[Tuple[str, ProfileUrlRule]] = []
        for name, rules in self.by_adapter.items():
            rule = match_profile_rule(url, rules)
            if rule is not None:
                out.append((name, rule))
        return out


DEFAULT_PROFILE_RULES = ProfileRuleSet(
    by_adapter={
        "facebook": FACEBOOK_RULES,
        "linkedin": LINKEDIN_RULES,
        "instagram": INSTAGRAM_RULES,
        "web": WEB_PROFILE_RULES,
    }
)
