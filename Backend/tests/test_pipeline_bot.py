from __future__ import annotations

import pytest

from app.config import Settings
from app.core.logging import configure_logging
from app.workers import pipeline_bot
from tests.fixtures.notion import FakeNotionStore


def _settings(**overrides) -> Settings:
    data = dict(
        NOTION_TOKEN="secret_test_token",
        NOTION_NEWS_DB_ID="news-db",
        NOTION_CONFERENCE_DB_ID=None,
        NOTION_QUESTIONS_DB_ID=None,
        OPENAI_API_KEY="sk-test",
    )
    data.update(overrides)
    return Settings(**data)


def _recording_runners(order, failing=()):
    def make(name):
        async def runner(cfg, store):
            order.append(name)
            if name in failing:
                raise RuntimeError(f"{name} exploded")
            return {"created": 1}

        return runner

    return {name: make(name) for name in pipeline_bot.STAGES}


@pytest.mark.asyncio
async def test_stages_run_in_fixed_order():
    order = []

    results = await pipeline_bot.run_pipeline(
        _settings(),
        store=FakeNotionStore(),
        runners=_recording_runners(order),
    )

    assert order == ["news", "conferences", "summaries", "retention", "questions"]
    assert all(r["ok"] for r in results.values())


@pytest.mark.asyncio
async def test_failing_stage_does_not_stop_later_stages():
    order = []

    results = await pipeline_bot.run_pipeline(
        _settings(),
        store=FakeNotionStore(),
        runners=_recording_runners(order, failing={"news"}),
    )

    assert results["news"] == {"ok": False, "error": "news exploded"}
    assert results["questions"]["ok"] is True
    assert order[-1] == "questions"


@pytest.mark.asyncio
async def test_stage_selection_keeps_order():
    order = []

    results = await pipeline_bot.run_pipeline(
        _settings(),
        ["retention", "news"],
        store=FakeNotionStore(),
        runners=_recording_runners(order),
    )

    assert order == ["news", "retention"]
    assert set(results) == {"news", "retention"}


@pytest.mark.asyncio
async def test_optional_stages_are_disabled_without_database_ids():
    store = FakeNotionStore()

    results = await pipeline_bot.run_pipeline(_settings(), ["conferences", "questions"], store=store)

    assert results["conferences"] == {"ok": True, "counters": {"disabled": True, "reason": "NOTION_CONFERENCE_DB_ID not set"}}
    assert results["questions"]["counters"]["disabled"] is True
    assert store.queries == []


@pytest.mark.asyncio
async def test_retention_stage_uses_configured_days():
    store = FakeNotionStore()

    results = await pipeline_bot.run_pipeline(_settings(RETENTION_DAYS=3), ["retention"], store=store)

    assert results["retention"]["counters"] == {"candidates": 0, "archived": 0, "failed": 0}
    assert store.queries[0]["database_id"] == "news-db"


@pytest.mark.asyncio
async def test_missing_news_database_fails_only_that_stage():
    results = await pipeline_bot.run_pipeline(
        _settings(NOTION_NEWS_DB_ID=None),
        ["retention", "conferences"],
        store=FakeNotionStore(),
    )

    assert results["retention"]["ok"] is False
    assert "NOTION_NEWS_DB_ID" in results["retention"]["error"]
    assert results["conferences"]["ok"] is True


def test_parse_args_collects_stages():
    args = pipeline_bot.parse_args(["--stage", "news", "--stage", "retention"])
    assert args.stage == ["news", "retention"]
    assert pipeline_bot.parse_args([]).stage is None


@pytest.mark.asyncio
async def test_main_async_exit_codes(monkeypatch):
    calls = []

    async def fake_run_pipeline(cfg, stages):
        calls.append(stages)
        return {"news": {"ok": False, "error": "boom"}}

    monkeypatch.setattr(pipeline_bot, "run_pipeline", fake_run_pipeline)
    assert await pipeline_bot.main_async(["--stage", "news"]) == 0
    assert calls == [["news"]]

    async def broken_run_pipeline(cfg, stages):
        raise RuntimeError("notion down")

    monkeypatch.setattr(pipeline_bot, "run_pipeline", broken_run_pipeline)
    assert await pipeline_bot.main_async([]) == 1


@pytest.mark.asyncio
async def test_main_async_honors_configured_log_level(monkeypatch, capsys):
    async def fake_run_pipeline(cfg, stages):
        pipeline_bot._log().debug("pipeline_debug_event")
        return {}

    monkeypatch.setattr(pipeline_bot, "run_pipeline", fake_run_pipeline)
    monkeypatch.setattr(pipeline_bot.default_settings, "LOG_LEVEL", "DEBUG")
    try:
        assert await pipeline_bot.main_async([]) == 0
        out = capsys.readouterr().out
    finally:
        configure_logging(service_name="pipeline", level="INFO")

    assert "pipeline_debug_event" in out
    assert '"worker": "pipeline_bot"' in out


def test_info_level_filters_debug_events(capsys):
    configure_logging(service_name="pipeline", level="INFO")
    pipeline_bot._log().debug("pipeline_hidden_event")
    pipeline_bot._log().info("pipeline_visible_event")

    out = capsys.readouterr().out
    assert "pipeline_hidden_event" not in out
    assert "pipeline_visible_event" in out
