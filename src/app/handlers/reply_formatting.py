from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from src.app.markdown_v2 import (
    dedupe_self_links,
    escape_link_url,
    escape_markdown_v2,
    fold_text,
    markdown_to_v2,
)
from src.storage.models import MessageRecord

TELEGRAM_TEXT_LIMIT = 4096
QUERY_SNIPPET_CHARS = 500

# Literal substitutions for link mangling the model is known to produce.
LINK_REPAIRS = (
    ("tme.cat", "t.me/c"),
    ("/c/c", "/c"),
)


def repair_links(text: str) -> str:
    for wrong, right in LINK_REPAIRS:
        text = text.replace(wrong, right)
    return text


@dataclass(frozen=True)
class ComposeStage:
    name: str
    apply: Callable[[str], str]


class ReplyComposer:
    """Turns raw model text into a MarkdownV2 message.

    Stage order is fixed: repair, dedupe, MarkdownV2 conversion, fold, template.
    Conversion runs after dedupe so self-links are still compared unescaped, and
    folding runs after conversion so the quote markers stay unescaped.
    """

    def __init__(self, model_name: str, link_prefix: str = "ref", footer_url: str = "") -> None:
        self.model_name = model_name
        self.link_prefix = link_prefix
        self.footer_url = footer_url.strip()

    def body_stages(self) -> tuple[ComposeStage, ...]:
        return (
            ComposeStage("repair_links", repair_links),
            ComposeStage("dedupe_links", lambda text: dedupe_self_links(text, self.link_prefix)),
            ComposeStage("to_markdown_v2", markdown_to_v2),
            ComposeStage("fold", fold_text),
        )

    def render_body(self, raw_text: str) -> str:
        text = (raw_text or "").strip()
        for stage in self.body_stages():
            text = stage.apply(text)
        return text

    def compose_summary(self, raw_text: str) -> str:
        return self.attribution_line() + "\n" + self.render_body(raw_text) + self.footer()

    def compose_answer(self, raw_text: str) -> str:
        return self.render_body(raw_text)

    def attribution_line(self) -> str:
        return f"Group summary below, brought to you by {escape_markdown_v2(self.model_name)}"

    def footer(self) -> str:
        if not self.footer_url:
            return ""
        return f"\n[{escape_markdown_v2('Source code')}]({escape_link_url(self.footer_url)})"


def format_query_results(records: list[MessageRecord], header: str) -> list[str]:
    """Render search hits as MarkdownV2 chunks that fit one Telegram message each."""

    lines = []
    for record in records:
        raw_content = "[image]" if record.is_image else record.content
        if len(raw_content) > QUERY_SNIPPET_CHARS:
            raw_content = raw_content[:QUERY_SNIPPET_CHARS] + "..."
        user_name = escape_markdown_v2(record.user_name[:64])
        content = escape_markdown_v2(raw_content)
        lines.append(f"{user_name}: {content} [link]({escape_link_url(record.link)})")

    chunks: list[str] = []
    current = escape_markdown_v2(header)
    for line in lines:
        candidate = current + "\n" + line
        if len(candidate) > TELEGRAM_TEXT_LIMIT:
            chunks.append(current)
            current = line
            continue
        current = candidate
    chunks.append(current)
    return chunks
