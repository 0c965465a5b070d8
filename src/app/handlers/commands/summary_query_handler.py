from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

from telegram import Update
from telegram.error import BadRequest, Forbidden, TelegramError
from telegram.ext import ContextTypes

from src.app.handlers.reply_formatting import format_query_results
from src.app.handlers.services.summary_orchestrator import RetrievalWindow
from src.app.messages import HELP_TEXT, msg
from src.clients.llm_client import LlmRequestError

if TYPE_CHECKING:
    from src.app.bot_orchestrator import SummaryBot


LOGGER = logging.getLogger(__name__)

MAX_SUMMARY_HOURS = 24 * 365


def parse_summary_window(raw: str) -> RetrievalWindow:
    """Parse ``/summary`` arguments: ``12h`` for hours, ``420`` for a message count.

    Raises ValueError for non-numeric, non-positive or non-finite values and for
    hour ranges longer than a year.
    """

    text = (raw or "").strip().lower()
    if text.endswith("h"):
        hours = float(text[:-1])
        if not math.isfinite(hours) or hours <= 0 or hours > MAX_SUMMARY_HOURS:
            raise ValueError(f"Invalid hour range: {raw}")
        return RetrievalWindow.hours(hours)
    count = int(text)
    if count <= 0:
        raise ValueError(f"Invalid message count: {raw}")
    return RetrievalWindow.latest(count)


class SummaryQueryHandler:
    def __init__(self, bot: "SummaryBot") -> None:
        self.bot = bot

    async def summary_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        if not context.args:
            await update.message.reply_text(msg("usage_summary"))
            return
        try:
            window = parse_summary_window(context.args[0])
        except ValueError:
            await update.message.reply_text(msg("usage_summary"))
            return

        group_id = update.effective_chat.id
        try:
            summary = await self.bot.summary_orchestrator.summarize_group(group_id, window)
        except LlmRequestError as exc:
            LOGGER.warning("On-demand summary failed for %s: %s", group_id, exc)
            await update.message.reply_text(msg("summary_failed"))
            return

        if summary is None:
            await update.message.reply_text(msg("summary_empty"))
            return
        try:
            await update.message.reply_text(summary, parse_mode="MarkdownV2")
        except TelegramError as exc:
            LOGGER.error("Failed to send summary reply to %s: %s", group_id, exc)

    async def query_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        term = context.args[0].strip() if context.args else ""
        if not term:
            await update.message.reply_text(msg("usage_query"))
            return

        group_id = update.effective_chat.id
        records = await asyncio.to_thread(self.bot.db.search_messages, group_id, f"*{term}*")
        if not records:
            await update.message.reply_text(msg("query_empty"))
            return
        for chunk in format_query_results(records, msg("query_header")):
            try:
                await update.message.reply_text(chunk, parse_mode="MarkdownV2")
            except TelegramError as exc:
                LOGGER.error("Failed to send query results to %s: %s", group_id, exc)
                return

    async def ask_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or not update.effective_user:
            return
        question = " ".join(context.args or []).strip()
        if not question:
            await update.message.reply_text(msg("usage_ask"))
            return

        group_id = update.effective_chat.id
        requester_id = update.effective_user.id
        try:
            await context.bot.send_message(chat_id=requester_id, text=msg("ask_ack"))
        except (Forbidden, BadRequest) as exc:
            LOGGER.info("Private chat with %s unavailable: %s", requester_id, exc)
            await update.message.reply_text(msg("ask_need_private_chat"))
            return

        try:
            answer = await self.bot.summary_orchestrator.answer_question(group_id, question)
        except LlmRequestError as exc:
            LOGGER.warning("Answer for %s in %s failed: %s", requester_id, group_id, exc)
            await context.bot.send_message(chat_id=requester_id, text=msg("ask_failed"))
            return

        if answer is None:
            await context.bot.send_message(chat_id=requester_id, text=msg("ask_no_history"))
            return
        try:
            await context.bot.send_message(chat_id=requester_id, text=answer, parse_mode="MarkdownV2")
        except TelegramError as exc:
            LOGGER.error("Failed to send answer to %s: %s", requester_id, exc)

    async def status_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        await update.message.reply_text(msg("status_alive"))

    async def version_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        sha = (self.bot.settings.git_commit_sha or "unknown")[:7]
        await update.message.reply_text(msg("version", sha=sha), parse_mode="MarkdownV2")

    async def help_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return
        await update.message.reply_text(HELP_TEXT)
