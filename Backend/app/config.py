# app/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Backend/app/config.py -> parents[1] = Backend, parents[2] = repo root
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"
REPO_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(ENV_FILE, override=False)  # pre-load into the process environment


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # ---- Notion (document store) ----
    # Not required at class level so tests and dry imports work;
    # stages validate at runtime via require_notion().
    NOTION_TOKEN: Optional[str] = Field(default_factory=lambda: os.getenv("NOTION_TOKEN"))
    NOTION_VERSION: str = "2022-06-28"
    NOTION_NEWS_DB_ID: Optional[str] = None
    NOTION_CONFERENCE_DB_ID: Optional[str] = None
    NOTION_QUESTIONS_DB_ID: Optional[str] = None

    # ---- OpenAI ----
    OPENAI_API_KEY: Optional[str] = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    OPENAI_MODEL: str = "gpt-4o-mini"

    # ---- Sources ----
    FEED_SOURCES_PATH: Path = REPO_ROOT / "configs" / "feed_sources.yml"
    CONFERENCE_LIST_URL: str = "https://www.jspt.or.jp/conference/"

    # ---- HTTP / throttling ----
    HTTP_TIMEOUT_S: float = 10.0
    NEWS_WRITE_INTERVAL_S: float = 1.0
    SUMMARY_INTERVAL_S: float = 25.0

    # ---- Limits ----
    RETENTION_DAYS: int = 7
    QUESTION_SOURCE_LIMIT: int = 10
    QUESTION_COUNT: int = 3
    SUMMARY_MAX_CHARS: int = 200
    ABSTRACT_MAX_CHARS: int = 1500
    BODY_MAX_CHARS: int = 3000

    # Pydantic v2 settings
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


def require_notion(cfg: Optional[Settings] = None) -> str:
    """
    Runtime check with a clear message when the Notion token is missing.
    """
    cfg = cfg or settings
    if not cfg.NOTION_TOKEN:
        raise RuntimeError(
            "NOTION_TOKEN is missing. Check Backend/.env "
            f"(tried loading from: {ENV_FILE})."
        )
    return cfg.NOTION_TOKEN


def require_openai(cfg: Optional[Settings] = None) -> str:
    """
    Runtime check with a clear message when the OpenAI key is missing.
    """
    cfg = cfg or settings
    if not cfg.OPENAI_API_KEY:
        raise RuntimeError(
            "OPENAI_API_KEY is missing. Check Backend/.env "
            f"(tried loading from: {ENV_FILE})."
        )
    return cfg.OPENAI_API_KEY


def require_news_db(cfg: Optional[Settings] = None) -> str:
    cfg = cfg or settings
    if not cfg.NOTION_NEWS_DB_ID:
        raise RuntimeError("NOTION_NEWS_DB_ID is missing; the news database is required.")
    return cfg.NOTION_NEWS_DB_ID
