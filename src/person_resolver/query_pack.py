from __future__ import annotations


def _dedupe_queries(queries: list[str]) -> list[str]:
    # De-dupe while preserving order
    seen = set()
    out = []
    for q in queries:
        qn = " ".join(q.split())
        key = qn.lower()
        if key not in seen:
            seen.add(key)
            out.append(qn)
    return out


def build_facebook_queries(name: str) -> list[str]:
    n = name.strip()
    return _dedupe_queries([
        f'"{n}" site:facebook.com',
        f'"{n}" facebook profile',
        f'"{n}" facebook.com/',
    ])


def build_linkedin_queries(name: str) -> list[str]:
    n = name.strip()
    return _dedupe_queries([
        f'"{n}" site:linkedin.com/in/',
        f'"{n}" linkedin profile',
        f'"{n}" linkedin.com/in/',
    ])


def build_instagram_queries(name: str) -> list[str]:
    n = name.strip()
    return _dedupe_queries([
        f'"{n}" site:instagram.com',
        f'"{n}" instagram profile',
        f'"{n}" instagram.com/',
    ])


def build_web_profile_queries(name: str) -> list[str]:
    """
    Query pack tuned for people without an encyclopedia article:
    developer, student, portfolio and Q&A profile hosts.
    """
    n = name.strip()
    return _dedupe_queries([
        f'"{n}" site:geeksforgeeks.org',
        f'"{n}" site:github.com',
        f'"{n}" portfolio website',
        f'"{n}" college university student',
        f'"{n}" site:twitter.com',
        f'"{n}" about.me',
        f'"{n}" behance.net',
        f'"{n}" dribbble.com',
        f'"{n}" medium.com',
        f'"{n}" dev.to',
        f'"{n}" stackoverflow.com',
        f'"{n}" quora.com',
    ])


QUERY_BUILDERS = {
    "facebook": build_facebook_queries,
    "linkedin": build_linkedin_queries,
    "instagram": build_instagram_queries,
    "web": build_web_profile_queries,
}


def build_query_pack(adapter_name: str, name: str) -> list[str]:
    builder = QUERY_BUILDERS.get(adapter_name)
    if builder is None or not name.strip():
        return []
    return builder(name)
