from __future__ import annotations

import pytest

from services.dedup_writer import create_if_absent, record_exists
from services.notion_service import title_equals, title_value, url_value
from tests.fixtures.notion import FakeNotionStore

DB = "news-db"


@pytest.mark.asyncio
async def test_existing_value_never_creates():
    store = FakeNotionStore()
    store.add_page(DB, {"タイトル": title_value("AI新ツール登場")})

    created = await create_if_absent(
        store,
        DB,
        unique_filter=title_equals("タイトル", "AI新ツール登場"),
        properties={"タイトル": title_value("AI新ツール登場")},
    )

    assert created is None
    assert store.created == []


@pytest.mark.asyncio
async def test_absent_value_creates_exactly_once():
    store = FakeNotionStore()

    created = await create_if_absent(
        store,
        DB,
        unique_filter=title_equals("タイトル", "AI新ツール登場"),
        properties={"タイトル": title_value("AI新ツール登場"), "URL": url_value("https://example.com/a")},
        cover_url="https://example.com/cover.png",
    )

    assert created is not None
    assert len(store.created) == 1
    assert store.created[0]["page"]["cover"] == "https://example.com/cover.png"


@pytest.mark.asyncio
async def test_exists_query_asks_for_a_single_match():
    store = FakeNotionStore()
    store.add_page(DB, {"タイトル": title_value("A")})
    store.add_page(DB, {"タイトル": title_value("A")})

    assert await record_exists(store, DB, title_equals("タイトル", "A")) is True
    assert await record_exists(store, DB, title_equals("タイトル", "B")) is False
    assert store.queries[0]["limit"] == 1


@pytest.mark.asyncio
async def test_archived_pages_do_not_block_creation():
    store = FakeNotionStore()
    page = store.add_page(DB, {"タイトル": title_value("A")})
    page["archived"] = True

    created = await create_if_absent(
        store,
        DB,
        unique_filter=title_equals("タイトル", "A"),
        properties={"タイトル": title_value("A")},
    )

    assert created is not None
