from __future__ import annotations

import argparse
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from app.config import Settings, require_news_db, settings as default_settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from app.core.throttle import IntervalGate
from app.models.feed_sources import get_all_feed_sources
from services.abstract_summary_service import AbstractSummaryService
from services.base_scraper_service import BaseScraperService
from services.conference_ingest_service import store_conferences
from services.conference_scraper_service import ConferenceScraperService
from services.content_extraction_service import ContentExtractionService
from services.feed_service import FeedService
from services.news_ingest_service import NewsIngestService
from services.notion_service import NotionService
from services.openai_service import OpenAIService
from services.question_synthesis_service import QuestionSynthesisService
from services.retention_service import sweep_flagged_news


def _log():
    # Bound per call so the level set by configure_logging applies.
    return get_logger().bind(worker="pipeline_bot")


STAGES = ("news", "conferences", "summaries", "retention", "questions")

StageFn = Callable[[Settings, NotionService], Awaitable[Dict[str, Any]]]


def _disabled(stage: str, reason: str) -> Dict[str, Any]:
    _log().info(f"{stage}_stage_disabled", reason=reason)
    return {"disabled": True, "reason": reason}


async def run_news_stage(cfg: Settings, store: NotionService) -> Dict[str, Any]:
    database_id = require_news_db(cfg)
    sources = get_all_feed_sources(cfg.FEED_SOURCES_PATH)
    if not sources:
        return _disabled("news", "no_feed_sources")
    async with FeedService(timeout_s=cfg.HTTP_TIMEOUT_S) as feeds, ContentExtractionService(
        timeout_s=cfg.HTTP_TIMEOUT_S,
        body_max_chars=cfg.BODY_MAX_CHARS,
    ) as extractor:
        service = NewsIngestService(store=store, feeds=feeds, extractor=extractor, settings=cfg)
        return await service.run(database_id, sources)


async def run_conference_stage(cfg: Settings, store: NotionService) -> Dict[str, Any]:
    if not cfg.NOTION_CONFERENCE_DB_ID:
        return _disabled("conference", "NOTION_CONFERENCE_DB_ID not set")
    async with ConferenceScraperService(timeout_s=cfg.HTTP_TIMEOUT_S) as scraper:
        records = await scraper.scrape(cfg.CONFERENCE_LIST_URL)
    return await store_conferences(store, cfg.NOTION_CONFERENCE_DB_ID, records)


async def run_summary_stage(cfg: Settings, store: NotionService) -> Dict[str, Any]:
    database_id = require_news_db(cfg)
    ai = OpenAIService(settings=cfg)
    async with BaseScraperService(timeout_s=cfg.HTTP_TIMEOUT_S) as scraper:
        service = AbstractSummaryService(
            store=store,
            ai=ai,
            scraper=scraper,
            gate=IntervalGate(cfg.SUMMARY_INTERVAL_S, name="summary"),
            settings=cfg,
        )
        return await service.run(database_id)


async def run_retention_stage(cfg: Settings, store: NotionService) -> Dict[str, Any]:
    return await sweep_flagged_news(store, require_news_db(cfg), days=cfg.RETENTION_DAYS)


async def run_question_stage(cfg: Settings, store: NotionService) -> Dict[str, Any]:
    if not cfg.NOTION_QUESTIONS_DB_ID:
        return _disabled("question", "NOTION_QUESTIONS_DB_ID not set")
    service = QuestionSynthesisService(
        store=store,
        ai=OpenAIService(settings=cfg),
        source_limit=cfg.QUESTION_SOURCE_LIMIT,
        question_count=cfg.QUESTION_COUNT,
    )
    return await service.run(require_news_db(cfg), cfg.NOTION_QUESTIONS_DB_ID)


STAGE_RUNNERS: Dict[str, StageFn] = {
    "news": run_news_stage,
    "conferences": run_conference_stage,
    "summaries": run_summary_stage,
    "retention": run_retention_stage,
    "questions": run_question_stage,
}


async def run_pipeline(
    cfg: Optional[Settings] = None,
    stages: Optional[Sequence[str]] = None,
    *,
    store: Optional[NotionService] = None,
    runners: Optional[Dict[str, StageFn]] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Run the selected stages in fixed order. A failing stage is logged and
    recorded; later stages still run.
    """
    cfg = cfg or default_settings
    runners = runners or STAGE_RUNNERS
    selected = set(stages or STAGES)
    results: Dict[str, Dict[str, Any]] = {}

    async with store or NotionService(settings=cfg) as notion:
        for stage in STAGES:
            if stage not in selected:
                continue
            _log().info("pipeline_stage_started", stage=stage)
            try:
                counters = await runners[stage](cfg, notion)
            except Exception as exc:
                _log().error(
                    "pipeline_stage_failed",
                    stage=stage,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                results[stage] = {"ok": False, "error": str(exc)}
                continue
            results[stage] = {"ok": True, "counters": counters}

    _log().info(
        "pipeline_finished",
        stages=list(results),
        failed=[name for name, result in results.items() if not result["ok"]],
    )
    return results


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Rehab feed pipeline: news, conferences, PubMed summaries, retention, questions."
    )
    parser.add_argument(
        "--stage",
        action="append",
        choices=STAGES,
        default=None,
        help="Run only this stage (repeatable). Default: all stages in order.",
    )
    return parser.parse_args(argv)


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(service_name="pipeline", level=default_settings.LOG_LEVEL)
    with with_run_id():
        try:
            await run_pipeline(default_settings, args.stage)
        except Exception as exc:
            _log().error("pipeline_failed", error=str(exc), error_type=type(exc).__name__)
            return 1
    return 0


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
