from __future__ import annotations

from app.models.feed_sources import FeedSource
from services.news_feed_rules import KeywordRules, is_admitted, matches_any, rules_for_source


RULES = KeywordRules.from_keywords(["AI", "教育"], ["募集"])


def test_exclude_wins_over_include():
    assert is_admitted("AI教育セミナー募集", RULES) is False


def test_include_admits():
    assert is_admitted("AI教育の未来", RULES) is True


def test_no_include_match_rejects():
    assert is_admitted("野球大会のお知らせ", RULES) is False


def test_empty_title_is_rejected():
    assert is_admitted("", RULES) is False


def test_ascii_matching_ignores_case():
    assert matches_any("new ai tools", ["AI"]) is True
    assert matches_any("Physical Therapy trial", ["physical therapy"]) is True


def test_non_ascii_matching_is_exact():
    assert matches_any("ＡＩ活用", ["AI"]) is False
    assert matches_any("りはびり", ["リハビリ"]) is False


def test_rules_for_source_uses_source_keywords():
    source = FeedSource(
        key="s",
        name="S",
        url="https://example.com/feed",
        include_keywords=("介護", ""),
        exclude_keywords=("求人",),
    )
    rules = rules_for_source(source)
    assert rules.include == ("介護",)
    assert is_admitted("介護報酬改定", rules) is True
    assert is_admitted("介護職求人", rules) is False
