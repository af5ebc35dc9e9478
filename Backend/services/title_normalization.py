from __future__ import annotations

import re
from typing import Iterable

# Innermost bracket pairs only; repeated passes peel nested tags.
_ASCII_TAG_RE = re.compile(r"\[[^\[\]]*\]")
_FULLWIDTH_TAG_RE = re.compile(r"【[^【】]*】")
_WHITESPACE_RE = re.compile(r"\s+")
_PREFIX_SEPARATORS = (":", "：")


def strip_bracket_tags(value: str) -> str:
    text = value
    while True:
        stripped = _FULLWIDTH_TAG_RE.sub("", _ASCII_TAG_RE.sub("", text))
        if stripped == text:
            return text
        text = stripped


def strip_source_prefix(value: str, prefixes: Iterable[str]) -> str:
    text = value.lstrip()
    for prefix in prefixes:
        prefix = prefix.strip()
        if not prefix or not text.startswith(prefix):
            continue
        rest = text[len(prefix):].lstrip()
        if rest.startswith(_PREFIX_SEPARATORS):
            return rest[1:].lstrip()
    return text


def normalize_title(raw_title: str, prefixes: Iterable[str] = ()) -> str:
    """
    Canonical display title: bracketed tags and "Source:" prefixes removed,
    whitespace collapsed. Applied until stable, so the result is idempotent.
    """
    prefixes = tuple(prefixes)
    text = _WHITESPACE_RE.sub(" ", raw_title or "").strip()
    while True:
        cleaned = strip_source_prefix(strip_bracket_tags(text), prefixes)
        cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
        if cleaned == text:
            return cleaned
        text = cleaned
