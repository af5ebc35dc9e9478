"""
Feed sources registry loader.

Parses configs/feed_sources.yml into strongly-typed FeedSource objects with
structlog-backed validation and caching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from app.config import settings
from app.core.logging import get_logger

logger = get_logger()

DEFAULT_MAX_ITEMS = 25


@dataclass(frozen=True)
class FeedSource:
    """Single RSS/Atom feed definition with its keyword rules."""

    key: str
    name: str
    url: str
    include_keywords: Tuple[str, ...]
    exclude_keywords: Tuple[str, ...]
    title_prefixes: Tuple[str, ...] = ()
    max_items: int = DEFAULT_MAX_ITEMS
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def prefixes(self) -> Tuple[str, ...]:
        """Prefixes stripped from titles: configured ones plus the source name."""
        if self.name in self.title_prefixes:
            return self.title_prefixes
        return (*self.title_prefixes, self.name)


def load_feed_sources_config(path: Optional[Path] = None) -> Dict[str, object]:
    """
    Load raw YAML config.

    Returns empty dict if file is missing or invalid to keep the pipeline running.
    """
    cfg_path = Path(path) if path else Path(settings.FEED_SOURCES_PATH)
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error("feed_sources_config_not_found", path=str(cfg_path))
        return {}
    except OSError as exc:
        logger.error("feed_sources_config_read_error", path=str(cfg_path), error=str(exc))
        return {}

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        logger.error("feed_sources_config_parse_error", path=str(cfg_path), error=str(exc))
        return {}

    if not isinstance(data, dict):
        logger.error(
            "feed_sources_config_invalid_root",
            path=str(cfg_path),
            root_type=type(data).__name__,
        )
        return {}

    return data


def _keyword_tuple(value: object) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    cleaned = [str(v).strip() for v in value if str(v).strip()]
    return tuple(cleaned)


def _max_items(value: object, source: str) -> int:
    if value is None:
        return DEFAULT_MAX_ITEMS
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        logger.warning("feed_source_invalid_max_items", source=source, value=value)
        return DEFAULT_MAX_ITEMS


def _validate_source(raw: Dict[str, Any], defaults: Dict[str, Any]) -> Optional[FeedSource]:
    """Validate raw dict and convert to FeedSource, logging issues."""
    missing = [k for k in ("name", "url") if not raw.get(k)]
    if missing:
        logger.warning("feed_source_invalid_missing_fields", missing=missing, raw=raw)
        return None

    url = raw.get("url")
    if not isinstance(url, str) or not url.startswith(("http://", "https://")):
        logger.warning("feed_source_invalid_url", url=url, raw=raw)
        return None

    name = str(raw.get("name")).strip()
    key_raw = raw.get("key")
    key = key_raw.strip() if isinstance(key_raw, str) and key_raw.strip() else url

    include = _keyword_tuple(raw.get("include_keywords"))
    if include is None:
        include = _keyword_tuple(defaults.get("include_keywords")) or ()
    exclude = _keyword_tuple(raw.get("exclude_keywords"))
    if exclude is None:
        exclude = _keyword_tuple(defaults.get("exclude_keywords")) or ()
    if not include:
        logger.warning("feed_source_without_include_keywords", source=name)

    return FeedSource(
        key=key,
        name=name,
        url=url,
        include_keywords=include,
        exclude_keywords=exclude,
        title_prefixes=_keyword_tuple(raw.get("title_prefixes")) or (),
        max_items=_max_items(raw.get("max_items", defaults.get("max_items")), name),
        raw=dict(raw),
    )


@lru_cache(maxsize=8)
def _load_sources_from_path(path_str: str) -> Tuple[FeedSource, ...]:
    cfg_path = Path(path_str)
    cfg = load_feed_sources_config(cfg_path)
    raw_sources = cfg.get("sources", [])
    defaults = cfg.get("defaults") or {}
    defaults_dict = defaults if isinstance(defaults, dict) else {}

    if not isinstance(raw_sources, list):
        logger.error(
            "feed_sources_invalid_sources_type",
            actual_type=type(raw_sources).__name__,
            path=str(cfg_path),
        )
        return ()

    result: List[FeedSource] = []
    for idx, raw in enumerate(raw_sources):
        if not isinstance(raw, dict):
            logger.warning(
                "feed_source_invalid_entry_type",
                index=idx,
                value_type=type(raw).__name__,
            )
            continue
        parsed = _validate_source(raw, defaults_dict)
        if parsed:
            result.append(parsed)

    logger.info("feed_sources_loaded", path=str(cfg_path), total=len(result))
    return tuple(result)


def get_all_feed_sources(path: Optional[Path] = None) -> List[FeedSource]:
    """
    Public accessor for all valid feed sources.

    Accepts optional path (useful for tests). Results are cached per-path.
    """
    cfg_path = Path(path) if path else Path(settings.FEED_SOURCES_PATH)
    return list(_load_sources_from_path(str(cfg_path.resolve())))


def clear_feed_sources_cache() -> None:
    """Reset LRU cache (useful for tests)."""
    _load_sources_from_path.cache_clear()
