from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import httpx
from rich import print
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .adapters import build_default_adapters
from .config import AppConfig, default_config, list_profile_rule_names, load_config, repo_root
from .event_extractor import extract_timeline_events, store_events
from .fetcher import make_client
from .models import Candidate, ResolveResult
from .resolver import PersonResolver
from .search_pipeline import search_all_sources
from .storage import JsonFileStore

logger = logging.getLogger(__name__)


def get_config() -> AppConfig:
    try:
        return load_config()
    except FileNotFoundError as e:
        logger.info("%s - using built-in defaults", e)
        return default_config()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
    )
    # per-request lines from the HTTP stack are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _store_for(cfg: AppConfig, store_path: Optional[Path]) -> JsonFileStore:
    return JsonFileStore(store_path.expanduser().resolve() if store_path else cfg.storage_path())


def _print_candidates(candidates: List[Candidate]) -> None:
    table = Table(title=f"{len(candidates)} candidate(s)")
    table.add_column("#", justify="right")
    table.add_column("name")
    table.add_column("source")
    table.add_column("verified")
    table.add_column("conf", justify="right")
    table.add_column("sim", justify="right")
    table.add_column("url", overflow="fold")
    for i, c in enumerate(candidates, start=1):
        table.add_row(
            str(i),
            c.name,
            c.source_type.value,
            "yes" if c.verified else "no",
            f"{c.confidence:.2f}",
            f"{c.similarity_score:.2f}",
            c.source_url,
        )
    print(table)


def _print_result(result: ResolveResult) -> None:
    print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))


def cmd_ping() -> None:
    cfg = get_config()
    root = repo_root()

    print(f"[bold]person-resolver[/bold] version={__version__}")
    print(f"env={cfg.env}")
    print(f"repo_root={root}")

    settings_path = root / "configs" / "settings.yaml"
    sources_path = root / "configs" / "profile_sources.yaml"
    print(f"settings.yaml exists={settings_path.exists()}")
    print(f"profile_sources.yaml exists={sources_path.exists()}")

    # Key presence only (never print keys)
    print(f"SERPAPI_API_KEY present={cfg.serpapi_api_key_present}")
    print(f"YOUTUBE_API_KEY present={cfg.youtube_api_key_present}")
    print(f"OPENAI_API_KEY present={cfg.openai_api_key_present}")

    print(f"profile rule sets={', '.join(list_profile_rule_names(cfg))}")
    print("adapters:")
    for a in build_default_adapters(cfg):
        print(f"  - {a.name} ({a.source_type.value}) configured={a.is_configured()}")

    print(f"store={cfg.storage_path()}")


def cmd_check_url(url: str) -> None:
    cfg = get_config()
    matches = cfg.profile_rules().classify(url)

    print(f"url={url}")
    print(f"profile_url={bool(matches)}")
    for adapter_name, rule in matches:
        print(f"  - adapter={adapter_name} source_type={rule.source_type.value} domain={rule.domain or '*'}")


async def _search(cfg: AppConfig, query: str) -> List[Candidate]:
    async with make_client(cfg.http_timeout_s) as client:
        adapters = build_default_adapters(cfg, client=client)
        return await search_all_sources(
            query, adapters, person_filter=cfg.person_filter(), ranking=cfg.ranking_policy()
        )


def cmd_search(query: str) -> List[Candidate]:
    cfg = get_config()
    candidates = asyncio.run(_search(cfg, query))
    _print_candidates(candidates)
    return candidates


def _resolver(cfg: AppConfig, store: JsonFileStore, client: httpx.AsyncClient) -> PersonResolver:
    return PersonResolver(
        store,
        build_default_adapters(cfg, client=client),
        person_filter=cfg.person_filter(),
        ranking=cfg.ranking_policy(),
        timeline_rules=cfg.timeline_rules(),
        client=client,
    )


async def _resolve(cfg: AppConfig, store: JsonFileStore, query: str) -> ResolveResult:
    async with make_client(cfg.http_timeout_s) as client:
        return await _resolver(cfg, store, client).resolve(query)


async def _create(cfg: AppConfig, store: JsonFileStore, title: str, source_type: Optional[str]) -> ResolveResult:
    async with make_client(cfg.http_timeout_s) as client:
        return await _resolver(cfg, store, client).create_from_candidate(title, source_type)


def cmd_resolve(query: str, store_path: Optional[Path] = None) -> ResolveResult:
    cfg = get_config()
    result = asyncio.run(_resolve(cfg, _store_for(cfg, store_path), query))
    if result.candidates:
        _print_candidates(result.candidates)
    _print_result(result)
    return result


def cmd_create(title: str, source_type: Optional[str] = None, store_path: Optional[Path] = None) -> ResolveResult:
    cfg = get_config()
    result = asyncio.run(_create(cfg, _store_for(cfg, store_path), title, source_type))
    _print_result(result)
    return result


def cmd_extract_events(text_file: Path, name: str, out: Optional[Path] = None) -> Path:
    cfg = get_config()
    text = text_file.expanduser().resolve().read_text(encoding="utf-8")
    events = extract_timeline_events(text, name, cfg.timeline_rules())

    out_path = out or text_file.with_name(text_file.stem + ".events.json")
    stored = store_events(out_path.expanduser().resolve(), events)
    print(f"events: {stored}")
    print(f"events_count={len(events)}")
    return stored
