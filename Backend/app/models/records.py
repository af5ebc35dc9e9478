from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Notion property names per database. The databases are curated by hand in
# Notion, so these must match the column names there exactly.
NEWS_TITLE_PROP = "タイトル"
NEWS_URL_PROP = "URL"
NEWS_SOURCE_PROP = "ソース"
NEWS_DELETE_PROP = "削除"
NEWS_TRANSLATED_TITLE_PROP = "和訳タイトル"
NEWS_JOURNAL_PROP = "ジャーナル"
NEWS_SUMMARY_PROP = "要約"

CONFERENCE_NAME_PROP = "大会名称"
CONFERENCE_URL_PROP = "URL"
CONFERENCE_DATE_PROP = "開催年月日"
CONFERENCE_VENUE_PROP = "会場"
CONFERENCE_REMARKS_PROP = "備考"

QUESTION_TEXT_PROP = "問い"
QUESTION_STATUS_PROP = "ステータス"
QUESTION_DEFAULT_STATUS = "未着手"

PUBMED_HOST = "pubmed.ncbi.nlm.nih.gov"


def is_pubmed_url(url: Optional[str]) -> bool:
    return bool(url) and PUBMED_HOST in url


class FeedItem(BaseModel):
    """One entry of a parsed feed, consumed immediately by the ingest stage."""

    raw_title: str
    link: str
    enclosure_url: Optional[str] = None


class ExtractedContent(BaseModel):
    image_url: Optional[str] = None
    body: str = ""


class ConferenceRecord(BaseModel):
    name: str
    url: str
    date_text: str = ""
    venue_text: str = ""
    remarks_text: str = ""


class SummaryPayload(BaseModel):
    """
    JSON object returned by the model for one PubMed abstract.
    Missing fields are tolerated here and treated as absent by the caller.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    translated_title: str = Field(default="", alias="translatedTitle")
    journal: str = ""
    summary: str = ""

    @field_validator("translated_title", "journal", "summary", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()


class SuggestedQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    q: str = ""

    @field_validator("q", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()


class QuestionSuggestions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    actions: List[SuggestedQuestion] = Field(default_factory=list)
