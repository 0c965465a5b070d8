"""Telegram MarkdownV2 text helpers.

These are the building blocks of the reply pipeline. They are pure string
functions; the order they must run in is owned by
``src.app.handlers.reply_formatting.ReplyComposer``.
"""

from __future__ import annotations

import re
from functools import lru_cache

import telegramify_markdown

RESERVED_CHARS = "_*[]()~`>#+-=|{}.!"

FOLD_OPEN = "**>"
FOLD_QUOTE = ">"
FOLD_CLOSE = "||"

SUPERSCRIPT_DIGITS = {
    "0": "⁰",
    "1": "¹",
    "2": "²",
    "3": "³",
    "4": "⁴",
    "5": "⁵",
    "6": "⁶",
    "7": "⁷",
    "8": "⁸",
    "9": "⁹",
}

MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")


@lru_cache(maxsize=1)
def _reserved_pattern() -> re.Pattern:
    return re.compile("([" + re.escape(RESERVED_CHARS) + "])")


@lru_cache(maxsize=1)
def _url_reserved_pattern() -> re.Pattern:
    return re.compile(r"([\\)])")


def escape_markdown_v2(text: str) -> str:
    """Prefix every reserved MarkdownV2 character with a backslash.

    Not idempotent: escaping twice doubles the markers, so callers escape once
    and never pass text that already carries intentional markup.
    """

    return _reserved_pattern().sub(r"\\\1", text)


def escape_link_url(url: str) -> str:
    # Inside (...) only ")" and "\" need escaping.
    return _url_reserved_pattern().sub(r"\\\1", url)


def markdown_to_v2(text: str) -> str:
    """Convert model markdown into MarkdownV2.

    Formatting such as bold, lists and links is kept as MarkdownV2 entities;
    everything else is escaped.
    """

    return telegramify_markdown.markdownify(text).strip()


def to_superscript(number: int) -> str:
    if number < 0:
        raise ValueError(f"Superscript ordinals must be non-negative: {number}")
    return "".join(SUPERSCRIPT_DIGITS[digit] for digit in str(int(number)))


def dedupe_self_links(text: str, prefix: str) -> str:
    """Collapse self-identical links into numbered references.

    ``[U](U)`` becomes ``[<prefix><n>](U)`` where ``n`` is the superscript
    ordinal of ``U`` in first-seen order. Repeated URLs reuse their ordinal.
    Links whose label differs from the target are left untouched.
    """

    ordinals: dict[str, int] = {}

    def _replace(match: re.Match) -> str:
        label, url = match.group(1), match.group(2)
        if label != url:
            return match.group(0)
        if url not in ordinals:
            ordinals[url] = len(ordinals) + 1
        return f"[{prefix}{to_superscript(ordinals[url])}]({url})"

    return MARKDOWN_LINK_PATTERN.sub(_replace, text)


def fold_text(text: str) -> str:
    """Wrap text in an expandable block quote."""

    return FOLD_OPEN + text.replace("\n", "\n" + FOLD_QUOTE) + FOLD_CLOSE
