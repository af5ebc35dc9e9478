from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from app.models.records import FeedItem


class RSSNormalizationError(Exception):
    """
    Recoverable normalization failure for a single RSS/Atom entry.
    Logged and counted, never fatal for the feed.
    """

    def __init__(self, message: str, entry_raw: Dict[str, Any] | None = None):
        super().__init__(message)
        self.entry_raw = entry_raw or {}


def _entries(parsed_feed: Any) -> List[Any]:
    if isinstance(parsed_feed, dict):
        return list(parsed_feed.get("entries") or [])
    return list(getattr(parsed_feed, "entries", []) or [])


def _extract_title(entry: Dict[str, Any]) -> str:
    title = entry.get("title")
    if isinstance(title, str):
        return title.strip()
    return ""


def _extract_link(entry: Dict[str, Any]) -> str:
    link = entry.get("link")
    if isinstance(link, str) and link.strip():
        return link.strip()

    links = entry.get("links")
    if isinstance(links, list):
        for link_entry in links:
            if not isinstance(link_entry, dict):
                continue
            rel = str(link_entry.get("rel") or "").lower()
            href = link_entry.get("href")
            if isinstance(href, str) and href.strip() and rel in {"", "alternate"}:
                return href.strip()
    return ""


def _extract_enclosure(entry: Dict[str, Any]) -> Optional[str]:
    enclosures = entry.get("enclosures")
    if isinstance(enclosures, list):
        for enclosure in enclosures:
            if not isinstance(enclosure, dict):
                continue
            href = enclosure.get("href") or enclosure.get("url")
            kind = str(enclosure.get("type") or "")
            if isinstance(href, str) and href.strip() and (not kind or kind.startswith("image/")):
                return href.strip()

    for key in ("media_content", "media_thumbnail"):
        media = entry.get(key)
        if isinstance(media, list):
            for item in media:
                if isinstance(item, dict):
                    url = item.get("url")
                    if isinstance(url, str) and url.strip():
                        return url.strip()
    return None


def normalize_entry(entry: Any) -> Tuple[FeedItem | None, RSSNormalizationError | None]:
    """
    Map a single feedparser entry onto a FeedItem.
    Returns:
        (FeedItem, None) on success
        (None, RSSNormalizationError) on failure
    """
    try:
        link = _extract_link(entry)
        if not link:
            raise RSSNormalizationError("missing_link", entry_raw=dict(entry))
        return FeedItem(
            raw_title=_extract_title(entry),
            link=link,
            enclosure_url=_extract_enclosure(entry),
        ), None
    except RSSNormalizationError as err:
        return None, err
    except Exception as exc:
        return None, RSSNormalizationError(str(exc))


def normalize_feed_entries(
    parsed_feed: Any,
    max_items: Optional[int] = None,
) -> Tuple[List[FeedItem], List[RSSNormalizationError]]:
    """
    Iterate feed entries in document order, collecting items and errors.
    At most `max_items` entries are considered.
    """
    items: List[FeedItem] = []
    errors: List[RSSNormalizationError] = []
    entries = _entries(parsed_feed)
    if max_items is not None:
        entries = entries[:max_items]
    for entry in entries:
        item, err = normalize_entry(entry)
        if item is not None:
            items.append(item)
        elif err is not None:
            errors.append(err)
    return items, errors
