from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .candidates import PersonFilterConfig, RankingPolicy
from .event_extractor import TimelineRules
from .whitelist import DEFAULT_PROFILE_RULES, ProfileRuleSet, rules_from_config


def repo_root() -> Path:
    # Assumes this file lives at: repo/src/person_resolver/config.py
    return Path(__file__).resolve().parents[2]


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_env() -> None:
    load_dotenv(repo_root() / ".env")


def env_key(name: str) -> str:
    return (os.getenv(name) or "").strip()


@dataclass(frozen=True)
class AppConfig:
    env: str
    serpapi_api_key_present: bool
    youtube_api_key_present: bool
    openai_api_key_present: bool
    settings: Dict[str, Any]
    profile_sources: Dict[str, Any]

    @property
    def log_level(self) -> str:
        return str(self.settings.get("app", {}).get("log_level", "INFO")).upper()

    @property
    def http_timeout_s(self) -> float:
        return float(self.settings.get("http", {}).get("timeout_s", 20.0))

    @property
    def search_settings(self) -> Dict[str, Any]:
        return dict(self.settings.get("search", {}) or {})

    def storage_path(self) -> Path:
        raw = str(self.settings.get("storage", {}).get("path", "artifacts/profiles.json"))
        p = Path(raw).expanduser()
        return p if p.is_absolute() else (repo_root() / p).resolve()

    def ranking_policy(self) -> RankingPolicy:
        r = self.settings.get("ranking", {}) or {}
        return RankingPolicy(
            confidence_weight=float(r.get("confidence_weight", 0.6)),
            similarity_weight=float(r.get("similarity_weight", 0.4)),
            max_candidates=int(r.get("max_candidates", 4)),
        )

    def timeline_rules(self) -> TimelineRules:
        return TimelineRules.from_config(
            keywords=self.profile_sources.get("timeline_keywords"),
            settings=self.settings.get("timeline", {}) or {},
        )

    def person_filter(self) -> PersonFilterConfig:
        return PersonFilterConfig.from_config(self.profile_sources.get("disallowed_terms"))

    def profile_rules(self) -> ProfileRuleSet:
        raw = self.profile_sources.get("profile_rules")
        if not isinstance(raw, dict) or not raw:
            return DEFAULT_PROFILE_RULES
        return ProfileRuleSet(
            by_adapter={str(name): rules_from_config(items or []) for name, items in raw.items()}
        )


def load_config(
    settings_path: Optional[Path] = None,
    sources_path: Optional[Path] = None,
) -> AppConfig:
    load_env()

    settings_path = settings_path or (repo_root() / "configs" / "settings.yaml")
    sources_path = sources_path or (repo_root() / "configs" / "profile_sources.yaml")

    settings = load_yaml(settings_path)
    sources = load_yaml(sources_path)

    terms = sources.get("disallowed_terms", [])
    if not isinstance(terms, list) or not all(isinstance(t, str) for t in terms):
        raise ValueError("configs/profile_sources.yaml must contain: disallowed_terms: [..strings..]")

    env = os.getenv("APP_ENV", settings.get("app", {}).get("env", "local"))

    return AppConfig(
        env=str(env),
        serpapi_api_key_present=bool(env_key("SERPAPI_API_KEY")),
        youtube_api_key_present=bool(env_key("YOUTUBE_API_KEY")),
        openai_api_key_present=bool(env_key("OPENAI_API_KEY")),
        settings=settings,
        profile_sources=sources,
    )


def default_config() -> AppConfig:
    """
    Config with built-in defaults only; used when no configs/ directory ships
    alongside the installed package.
    """
    load_env()
    return AppConfig(
        env=os.getenv("APP_ENV", "local"),
        serpapi_api_key_present=bool(env_key("SERPAPI_API_KEY")),
        youtube_api_key_present=bool(env_key("YOUTUBE_API_KEY")),
        openai_api_key_present=bool(env_key("OPENAI_API_KEY")),
        settings={},
        profile_sources={},
    )


def list_profile_rule_names(cfg: AppConfig) -> List[str]:
    return sorted(cfg.profile_rules().by_adapter.keys())
