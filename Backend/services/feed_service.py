from __future__ import annotations

from typing import List

import feedparser

from app.core.logging import get_logger
from app.models.feed_sources import FeedSource
from app.models.records import FeedItem
from services.base_scraper_service import BaseScraperService
from services.rss_normalization import normalize_feed_entries

logger = get_logger()


class FeedService(BaseScraperService):
    """Fetches one RSS/Atom feed and maps its entries onto FeedItems."""

    async def fetch_items(self, source: FeedSource) -> List[FeedItem]:
        raw_feed = await self.fetch_html_or_none(source.url)
        if raw_feed is None:
            logger.warning("feed_fetch_failed", source=source.name, url=source.url)
            return []

        parsed = feedparser.parse(raw_feed)
        if getattr(parsed, "bozo", False) and not getattr(parsed, "entries", None):
            logger.warning(
                "feed_parse_failed",
                source=source.name,
                url=source.url,
                error=str(getattr(parsed, "bozo_exception", "")),
            )
            return []

        items, errors = normalize_feed_entries(parsed, max_items=source.max_items)
        for err in errors:
            logger.warning(
                "feed_entry_normalization_error",
                source=source.name,
                url=err.entry_raw.get("id") or source.url,
                error=str(err),
            )
        logger.info("feed_fetched", source=source.name, items=len(items), errors=len(errors))
        return items
