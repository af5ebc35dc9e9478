from __future__ import annotations

import pytest

from services.title_normalization import normalize_title, strip_bracket_tags, strip_source_prefix


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("【速報】AI新機能発表", "AI新機能発表"),
        ("[PR]AI新ツール登場", "AI新ツール登場"),
        ("  介護報酬  改定 【解説】 ", "介護報酬 改定"),
        ("[a][b]リハビリの日", "リハビリの日"),
        ("", ""),
        ("[PR]", ""),
    ],
)
def test_normalize_title(raw, expected):
    assert normalize_title(raw) == expected


def test_nested_brackets_are_removed():
    assert strip_bracket_tags("[[内側]外側]本文") == "本文"
    assert strip_bracket_tags("【【号外】特集】本文") == "本文"


def test_source_prefix_is_stripped_with_either_colon():
    prefixes = ("NHK", "厚生労働省")
    assert normalize_title("NHK: 介護報酬改定の方針", prefixes) == "介護報酬改定の方針"
    assert normalize_title("厚生労働省：通知を公表", prefixes) == "通知を公表"


def test_prefix_without_colon_is_kept():
    assert strip_source_prefix("NHKスペシャル 特集", ("NHK",)) == "NHKスペシャル 特集"


def test_prefix_after_tag_is_stripped():
    assert normalize_title("【速報】NHK: 新制度スタート", ("NHK",)) == "新制度スタート"


@pytest.mark.parametrize(
    "raw",
    [
        "【速報】AI新機能発表",
        "NHK: [PR] NHK: 二重プレフィックス",
        "[[x]y] 【z】 タイトル [w]",
        "普通のタイトル",
    ],
)
def test_normalize_title_is_idempotent(raw):
    once = normalize_title(raw, ("NHK",))
    assert normalize_title(once, ("NHK",)) == once
    assert "[" not in once and "【" not in once
