from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from src.app.handlers.reply_formatting import ReplyComposer
from src.app.prompts import MESSAGE_SEPARATOR, answer_question_prompt, question_message, summarize_chat_prompt
from src.storage.database import MAX_FETCH_BY_COUNT
from src.storage.models import IMAGE_CONTENT_PREFIX, MessageRecord

if TYPE_CHECKING:
    from src.clients.llm_client import ChatCompletionClient
    from src.storage.database import Database


LOGGER = logging.getLogger(__name__)

ANSWER_CONTEXT_MESSAGES = 1000


@dataclass(frozen=True)
class RetrievalWindow:
    """Which slice of a group's history to load: trailing hours or latest N."""

    kind: str
    value: float

    @classmethod
    def hours(cls, hours: float) -> "RetrievalWindow":
        return cls(kind="hours", value=float(hours))

    @classmethod
    def latest(cls, count: int) -> "RetrievalWindow":
        return cls(kind="count", value=float(min(int(count), MAX_FETCH_BY_COUNT)))

    def describe(self) -> str:
        if self.kind == "hours":
            return f"last {self.value:g}h"
        return f"last {int(self.value)} messages"


def content_item(content: str) -> dict[str, Any]:
    if content.startswith(IMAGE_CONTENT_PREFIX):
        return {"type": "image_url", "image_url": {"url": content}}
    return {"type": "text", "text": content}


def build_transcript(records: list[MessageRecord]) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for record in records:
        items.append(content_item(MESSAGE_SEPARATOR))
        items.append(content_item(f"{record.user_name}:"))
        items.append(content_item(record.content))
        items.append(content_item(record.link))
    return items


class SummaryOrchestrator:
    def __init__(
        self,
        db: "Database",
        llm: "ChatCompletionClient",
        composer: ReplyComposer,
        run_llm_task: Callable[..., Awaitable[Any]] | None = None,
    ) -> None:
        self.db = db
        self.llm = llm
        self.composer = composer
        self.run_llm_task = run_llm_task or asyncio.to_thread

    async def fetch_messages(self, group_id: int, window: RetrievalWindow) -> list[MessageRecord]:
        if window.kind == "hours":
            return await asyncio.to_thread(self.db.fetch_messages_since_hours, group_id, window.value)
        return await asyncio.to_thread(self.db.fetch_latest_messages, group_id, int(window.value))

    async def summarize_records(self, records: list[MessageRecord]) -> str:
        raw = await self.run_llm_task(self.llm.complete, summarize_chat_prompt(), [build_transcript(records)])
        return self.composer.compose_summary(raw)

    async def summarize_group(self, group_id: int, window: RetrievalWindow) -> str | None:
        """Return the composed MarkdownV2 summary, or None when there is nothing to summarize.

        Model failures propagate as ``LlmRequestError``.
        """

        records = await self.fetch_messages(group_id, window)
        if not records:
            return None
        LOGGER.info("Summarizing %s messages for group %s (%s)", len(records), group_id, window.describe())
        return await self.summarize_records(records)

    async def answer_question(self, group_id: int, question: str) -> str | None:
        records = await self.fetch_messages(group_id, RetrievalWindow.latest(ANSWER_CONTEXT_MESSAGES))
        if not records:
            return None
        raw = await self.run_llm_task(
            self.llm.complete,
            answer_question_prompt(),
            [build_transcript(records), question_message(question)],
        )
        return self.composer.compose_answer(raw)
