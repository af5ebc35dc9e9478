# Backend/services/content_extraction_service.py
"""
Article content extraction.

Fetches an article page and pulls a representative image (OpenGraph) and a
best-effort body text from it. Extraction never fails the pipeline: any
network or HTTP error yields an empty result.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from app.core.logging import get_logger
from app.models.records import ExtractedContent
from services.base_scraper_service import BaseScraperService, is_absolute_http

logger = get_logger()

FALLBACK_BODY = "（本文を自動取得できませんでした。リンク先をご確認ください）"

# Ordered: the first selector that yields text wins.
CONTENT_SELECTORS: Sequence[str] = (
    "article .article-body",
    "article .entry-content",
    "div.article-body",
    "div.entry-content",
    "div.post-content",
    "div#article-body",
    "div.news-body",
    "article",
    "main",
    "div#main",
    "div#content",
)

_NOISE_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "aside", "form", "iframe")
_SPACES_RE = re.compile(r"[ \t　]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")

BodyStrategy = Callable[[BeautifulSoup], Optional[str]]


def clean_block_text(text: str) -> str:
    """Collapse runs of spaces and blank lines, trim each line."""
    text = _SPACES_RE.sub(" ", text or "")
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = _BLANK_LINES_RE.sub("\n", text)
    return text.strip()


def selector_strategy(selector: str) -> BodyStrategy:
    def _extract(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        if node is None:
            return None
        for noise in node.find_all(list(_NOISE_TAGS)):
            noise.decompose()
        text = clean_block_text(node.get_text(separator="\n"))
        return text or None

    return _extract


DEFAULT_BODY_STRATEGIES: List[BodyStrategy] = [selector_strategy(s) for s in CONTENT_SELECTORS]


def extract_og_image(soup: BeautifulSoup, base_url: Optional[str] = None) -> Optional[str]:
    """
    OpenGraph image as an absolute http(s) URL. Relative values are resolved
    against base_url; anything still not absolute is dropped.
    """
    tag = soup.find("meta", property="og:image") or soup.find("meta", attrs={"name": "og:image"})
    if not tag:
        return None
    content = (tag.get("content") or "").strip()
    if not content:
        return None
    resolved = urljoin(base_url, content) if base_url else content
    return resolved if is_absolute_http(resolved) else None


def extract_body(
    soup: BeautifulSoup,
    strategies: Sequence[BodyStrategy] = DEFAULT_BODY_STRATEGIES,
    *,
    max_chars: Optional[int] = None,
) -> str:
    for strategy in strategies:
        text = strategy(soup)
        if text:
            return text[:max_chars] if max_chars else text
    return FALLBACK_BODY


class ContentExtractionService(BaseScraperService):
    def __init__(
        self,
        *,
        body_max_chars: int = 3000,
        strategies: Sequence[BodyStrategy] = DEFAULT_BODY_STRATEGIES,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.body_max_chars = body_max_chars
        self.strategies = list(strategies)

    def parse(self, html: str, *, with_body: bool = True, url: Optional[str] = None) -> ExtractedContent:
        soup = BeautifulSoup(html, "html.parser")
        image_url = extract_og_image(soup, url)
        body = extract_body(soup, self.strategies, max_chars=self.body_max_chars) if with_body else ""
        return ExtractedContent(image_url=image_url, body=body)

    async def extract(self, url: str, *, with_body: bool = True) -> ExtractedContent:
        html = await self.fetch_html_or_none(url)
        if html is None:
            return ExtractedContent(image_url=None, body="")
        return self.parse(html, with_body=with_body, url=url)
