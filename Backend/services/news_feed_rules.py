from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from app.models.feed_sources import FeedSource

# ASCII letters fold to lower case; everything else must match exactly.
_ASCII_FOLD = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    "abcdefghijklmnopqrstuvwxyz",
)


def _fold(value: str) -> str:
    return value.translate(_ASCII_FOLD)


@dataclass(frozen=True)
class KeywordRules:
    include: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()

    @classmethod
    def from_keywords(cls, include: Iterable[str], exclude: Iterable[str] = ()) -> "KeywordRules":
        return cls(
            include=tuple(k for k in include if k),
            exclude=tuple(k for k in exclude if k),
        )


def rules_for_source(source: FeedSource) -> KeywordRules:
    return KeywordRules.from_keywords(source.include_keywords, source.exclude_keywords)


def matches_any(title: str, keywords: Iterable[str]) -> bool:
    folded = _fold(title)
    return any(_fold(kw) in folded for kw in keywords)


def is_admitted(title: str, rules: KeywordRules) -> bool:
    """Pure helper: any include keyword matches and no exclude keyword vetoes."""
    if not title:
        return False
    return matches_any(title, rules.include) and not matches_any(title, rules.exclude)
