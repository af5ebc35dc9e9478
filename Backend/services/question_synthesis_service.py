# Backend/services/question_synthesis_service.py
"""
Discussion-question synthesis.

Reads the most recent summarized PubMed pages, asks the model for a fixed
number of open-ended questions for a study group, and stores each new
question in the questions database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from app.core.logging import get_logger
from app.models.records import (
    NEWS_SUMMARY_PROP,
    NEWS_TITLE_PROP,
    NEWS_TRANSLATED_TITLE_PROP,
    NEWS_URL_PROP,
    PUBMED_HOST,
    QUESTION_DEFAULT_STATUS,
    QUESTION_STATUS_PROP,
    QUESTION_TEXT_PROP,
    QuestionSuggestions,
)
from services.dedup_writer import DocumentStore, create_if_absent
from services.notion_service import (
    CREATED_TIME_DESC,
    and_filter,
    read_rich_text,
    read_title,
    rich_text_is_not_empty,
    select_value,
    title_equals,
    title_value,
    url_contains,
)

logger = get_logger()

MIN_SUMMARY_CHARS = 10

SYSTEM_PROMPT = (
    "あなたは臨床経験の長い理学療法士で、若手向け勉強会のファシリテーターです。"
    "最近の論文要約を読み、参加者が自分の臨床を振り返りたくなる問いを考えてください。"
    "問いは正解が一つに決まらない開かれた問いにし、穏やかで前向きな口調で書いてください。"
)


@dataclass(frozen=True)
class SummarySource:
    title: str
    summary: str


def collect_summary_sources(pages: List[Dict[str, Any]]) -> List[SummarySource]:
    sources: List[SummarySource] = []
    for page in pages:
        summary = read_rich_text(page, NEWS_SUMMARY_PROP).strip()
        if len(summary) <= MIN_SUMMARY_CHARS:
            continue
        title = read_rich_text(page, NEWS_TRANSLATED_TITLE_PROP).strip() or read_title(page, NEWS_TITLE_PROP)
        sources.append(SummarySource(title=title, summary=summary))
    return sources


def build_user_prompt(sources: List[SummarySource], count: int) -> str:
    bullets = "\n".join(f"- {s.title}: {s.summary}" for s in sources)
    return (
        f"最近の論文要約:\n{bullets}\n\n"
        f"これらを踏まえて、問いをちょうど{count}個提案してください。\n"
        '形式: {"actions": [{"q": "問い"}]}'
    )


def unique_questions(suggestions: QuestionSuggestions, count: int) -> List[str]:
    seen: set[str] = set()
    questions: List[str] = []
    for action in suggestions.actions:
        q = action.q.strip()
        if not q or q in seen:
            continue
        seen.add(q)
        questions.append(q)
    return questions[:count]


class QuestionSynthesisService:
    def __init__(
        self,
        *,
        store: DocumentStore,
        ai: Any,
        source_limit: int = 10,
        question_count: int = 3,
    ) -> None:
        self.store = store
        self.ai = ai
        self.source_limit = source_limit
        self.question_count = question_count

    async def load_sources(self, news_db_id: str) -> List[SummarySource]:
        pages = await self.store.query_database(
            news_db_id,
            filter=and_filter(
                url_contains(NEWS_URL_PROP, PUBMED_HOST),
                rich_text_is_not_empty(NEWS_SUMMARY_PROP),
            ),
            sorts=CREATED_TIME_DESC,
            limit=self.source_limit,
        )
        return collect_summary_sources(pages)

    def propose(self, sources: List[SummarySource]) -> List[str]:
        suggestions, _meta = self.ai.generate_json(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=build_user_prompt(sources, self.question_count),
            response_model=QuestionSuggestions,
            action_type="questions.synthesize",
            temperature=0.7,
        )
        return unique_questions(suggestions, self.question_count)

    async def run(self, news_db_id: str, questions_db_id: str) -> Dict[str, int]:
        counters = {"sources": 0, "proposed": 0, "created": 0, "duplicates": 0, "failed": 0}
        sources = await self.load_sources(news_db_id)
        counters["sources"] = len(sources)
        if not sources:
            logger.info("question_synthesis_no_sources")
            return counters

        questions = self.propose(sources)
        counters["proposed"] = len(questions)
        for question in questions:
            try:
                created = await create_if_absent(
                    self.store,
                    questions_db_id,
                    unique_filter=title_equals(QUESTION_TEXT_PROP, question),
                    properties={
                        QUESTION_TEXT_PROP: title_value(question),
                        QUESTION_STATUS_PROP: select_value(QUESTION_DEFAULT_STATUS),
                    },
                )
            except Exception as exc:
                counters["failed"] += 1
                logger.warning("question_write_failed", question=question, error=str(exc))
                continue
            if created is None:
                counters["duplicates"] += 1
            else:
                counters["created"] += 1
                logger.info("question_created", question=question)
        logger.info("question_stage_finished", **counters)
        return counters
