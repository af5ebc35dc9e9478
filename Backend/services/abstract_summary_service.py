# Backend/services/abstract_summary_service.py
"""
PubMed abstract summarization.

News pages whose URL points at PubMed and whose translated title is still
empty are summarized by the language model: the article page is fetched,
title / journal / abstract are extracted, and the model returns a Japanese
title, the journal name and a short summary that is written back to the page.
A page that fails at any step is left untouched and picked up by a later run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from app.config import Settings, settings as default_settings
from app.core.logging import get_logger
from app.core.throttle import IntervalGate
from app.models.records import (
    NEWS_JOURNAL_PROP,
    NEWS_SUMMARY_PROP,
    NEWS_TITLE_PROP,
    NEWS_TRANSLATED_TITLE_PROP,
    NEWS_URL_PROP,
    PUBMED_HOST,
    SummaryPayload,
)
from services.base_scraper_service import BaseScraperService
from services.content_extraction_service import clean_block_text
from services.dedup_writer import DocumentStore
from services.notion_service import (
    and_filter,
    read_title,
    read_url,
    rich_text_is_empty,
    rich_text_value,
    url_contains,
)

logger = get_logger()

UNKNOWN_TITLE = "unknown title"
NO_ABSTRACT = "no abstract"
UNKNOWN_JOURNAL = "unknown"
ELLIPSIS = "…"

SYSTEM_PROMPT = (
    "あなたは理学療法士向けに医学論文を紹介する編集者です。"
    "与えられた論文情報を読み、次の形式のJSONオブジェクトだけを返してください。\n"
    "{\n"
    '  "translatedTitle": "論文タイトルの自然な日本語訳",\n'
    '  "journal": "掲載誌名（原語のまま）",\n'
    '  "summary": "要約"\n'
    "}\n"
    "summaryは180〜200文字の日本語で、です・ます調を用い、"
    "研究の目的・対象・主な結果が臨床家に伝わるように書いてください。"
    "誇張や推測は避け、抄録に書かれている内容だけを使ってください。"
)


@dataclass(frozen=True)
class PubMedArticle:
    title: str
    journal: str
    abstract: str


JournalStrategy = Callable[[BeautifulSoup], Optional[str]]


def _meta_content(name: str) -> JournalStrategy:
    def _extract(soup: BeautifulSoup) -> Optional[str]:
        tag = soup.find("meta", attrs={"name": name})
        return (tag.get("content") or "").strip() or None if tag else None

    return _extract


def _attr_of(selector: str, attr: str) -> JournalStrategy:
    def _extract(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        if node is None:
            return None
        value = node.get(attr)
        return str(value).strip() or None if value else None

    return _extract


def _text_of(selector: str) -> JournalStrategy:
    def _extract(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        if node is None:
            return None
        return clean_block_text(node.get_text(" ")) or None

    return _extract


JOURNAL_STRATEGIES: Sequence[JournalStrategy] = (
    _meta_content("citation_journal_title"),
    _attr_of("#full-view-journal-trigger", "title"),
    _attr_of(".journal-actions-trigger", "title"),
    _text_of("#full-view-journal-trigger"),
    _text_of(".journal-actions-trigger"),
    _meta_content("citation_publisher"),
)

ABSTRACT_SELECTORS: Sequence[str] = (
    "div.abstract-content",
    "#eng-abstract",
    "#abstract",
    "div.abstract",
)


def parse_pubmed_article(html_text: str, *, abstract_max_chars: int = 1500) -> PubMedArticle:
    soup = BeautifulSoup(html_text, "html.parser")

    title = _text_of("h1.heading-title")(soup) or _meta_content("citation_title")(soup) or UNKNOWN_TITLE

    abstract = ""
    for selector in ABSTRACT_SELECTORS:
        abstract = _text_of(selector)(soup) or ""
        if abstract:
            break
    abstract = abstract[:abstract_max_chars] if abstract else NO_ABSTRACT

    journal = UNKNOWN_JOURNAL
    for strategy in JOURNAL_STRATEGIES:
        candidate = strategy(soup)
        if candidate:
            journal = candidate
            break

    return PubMedArticle(title=title, journal=journal, abstract=abstract)


def build_user_prompt(article: PubMedArticle) -> str:
    return (
        f"タイトル: {article.title}\n"
        f"掲載誌: {article.journal}\n"
        f"抄録:\n{article.abstract}\n"
    )


def truncate_summary(text: str, max_chars: int) -> str:
    """Hard cap on summary length; never raises."""
    text = (text or "").strip()
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1].rstrip() + ELLIPSIS


def pending_summary_filter() -> Dict[str, Any]:
    return and_filter(
        url_contains(NEWS_URL_PROP, PUBMED_HOST),
        rich_text_is_empty(NEWS_TRANSLATED_TITLE_PROP),
    )


class AbstractSummaryService:
    def __init__(
        self,
        *,
        store: DocumentStore,
        ai: Any,
        scraper: BaseScraperService,
        gate: Optional[IntervalGate] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store
        self.ai = ai
        self.scraper = scraper
        self.gate = gate or IntervalGate(self.settings.SUMMARY_INTERVAL_S, name="summary")

    async def find_pending(self, database_id: str) -> List[Dict[str, Any]]:
        return await self.store.query_database(database_id, filter=pending_summary_filter())

    def summarize_article(self, article: PubMedArticle) -> Optional[SummaryPayload]:
        payload, _meta = self.ai.generate_json(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=build_user_prompt(article),
            response_model=SummaryPayload,
            action_type="pubmed.summarize",
        )
        if not payload.translated_title or not payload.summary:
            return None
        return payload

    async def summarize_page(self, page: Dict[str, Any]) -> str:
        """
        Summarize one news page. Returns 'summarized' or 'skipped'; raises on
        fetch, model or write failures.
        """
        page_id = page.get("id")
        url = read_url(page, NEWS_URL_PROP)
        if not page_id or not url:
            return "skipped"

        html_text = await self.scraper.fetch_html(url)
        article = parse_pubmed_article(html_text, abstract_max_chars=self.settings.ABSTRACT_MAX_CHARS)

        await self.gate.wait()
        payload = self.summarize_article(article)
        if payload is None:
            logger.warning("summary_payload_incomplete", page_id=page_id, url=url)
            return "skipped"

        summary = truncate_summary(payload.summary, self.settings.SUMMARY_MAX_CHARS)
        journal = payload.journal or article.journal
        await self.store.update_page(
            page_id,
            properties={
                NEWS_TRANSLATED_TITLE_PROP: rich_text_value(payload.translated_title),
                NEWS_JOURNAL_PROP: rich_text_value(journal),
                NEWS_SUMMARY_PROP: rich_text_value(summary),
            },
        )
        logger.info(
            "summary_written",
            page_id=page_id,
            title=read_title(page, NEWS_TITLE_PROP),
            summary_chars=len(summary),
        )
        return "summarized"

    async def run(self, database_id: str) -> Dict[str, int]:
        counters = {"candidates": 0, "summarized": 0, "skipped": 0, "failed": 0}
        pages = await self.find_pending(database_id)
        counters["candidates"] = len(pages)
        for page in pages:
            try:
                outcome = await self.summarize_page(page)
            except Exception as exc:
                counters["failed"] += 1
                logger.warning(
                    "summary_failed",
                    page_id=page.get("id"),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue
            counters[outcome] += 1
        logger.info("summary_stage_finished", **counters)
        return counters
