from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from telegram.error import TelegramError

from src.app.handlers.services.batch_schedule import (
    in_retention_window,
    local_now,
    select_shard,
    shard_index_for,
)
from src.app.handlers.services.summary_orchestrator import RetrievalWindow
from src.clients.llm_client import LlmRequestError

if TYPE_CHECKING:
    from src.app.bot_orchestrator import SummaryBot


LOGGER = logging.getLogger(__name__)

DAILY_WINDOW_HOURS = 24


@dataclass
class TickReport:
    shard_index: int
    group_count: int
    retention_started: bool = False
    delivered: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    empty: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class JobRunner:
    def __init__(self, bot: "SummaryBot") -> None:
        self.bot = bot

    async def run_summary_tick(self, now: datetime | None = None) -> TickReport:
        """Process the shard of active groups that belongs to this tick."""

        settings = self.bot.settings
        moment = local_now(settings.default_timezone, now)
        retention_started = False
        if in_retention_window(moment, settings.summary_interval_minutes):
            self.start_retention_sweep()
            retention_started = True

        snapshot = await self.bot.activity_cache.get_active_groups(settings.daily_summary_message_threshold)
        shard_index = shard_index_for(moment, settings.summary_interval_minutes, settings.summary_shard_count)
        members = select_shard(snapshot.groups, shard_index, settings.summary_shard_count)
        report = TickReport(
            shard_index=shard_index,
            group_count=len(snapshot.groups),
            retention_started=retention_started,
        )
        LOGGER.debug("Shard %s: %s of %s active groups", shard_index, len(members), len(snapshot.groups))

        for position, group in members:
            LOGGER.debug("Processing group %s/%s: %s", position + 1, len(snapshot.groups), group.group_id)
            try:
                outcome = await self.summarize_and_deliver(group.group_id)
            except Exception as exc:
                LOGGER.exception("Summary for group %s failed: %s", group.group_id, exc)
                outcome = "failed"
            getattr(report, outcome).append(group.group_id)

        LOGGER.info(
            "Summary tick done: shard=%s delivered=%s skipped=%s empty=%s failed=%s",
            shard_index,
            len(report.delivered),
            len(report.skipped),
            len(report.empty),
            len(report.failed),
        )
        return report

    async def summarize_and_deliver(self, group_id: int) -> str:
        try:
            summary = await self.bot.summary_orchestrator.summarize_group(
                group_id,
                RetrievalWindow.hours(DAILY_WINDOW_HOURS),
            )
        except LlmRequestError as exc:
            LOGGER.warning("Model call failed for group %s: %s", group_id, exc)
            return "failed"
        if summary is None:
            return "empty"

        # The model call above is still spent for silenced groups.
        if int(group_id) in set(self.bot.settings.skip_summary_group_ids):
            LOGGER.info("Delivery skipped for silenced group %s", group_id)
            return "skipped"

        try:
            await self.bot.app.bot.send_message(chat_id=group_id, text=summary, parse_mode="MarkdownV2")
        except TelegramError as exc:
            LOGGER.error("Failed to send summary to %s: %s", group_id, exc)
            return "failed"
        LOGGER.info("Summary sent to group %s", group_id)
        return "delivered"

    def start_retention_sweep(self) -> None:
        self.bot.background.spawn(self.cleanup_messages(), label="trim-group-histories")
        self.bot.background.spawn(self.cleanup_images(), label="cleanup-old-images")

    async def cleanup_messages(self) -> None:
        keep = self.bot.settings.message_cleanup_threshold
        deleted = await asyncio.to_thread(self.bot.db.trim_group_histories, keep)
        LOGGER.info("Trimmed %s messages beyond the newest %s per group", deleted, keep)

    async def cleanup_images(self) -> None:
        retention_hours = self.bot.settings.image_retention_hours
        deleted = await asyncio.to_thread(self.bot.db.delete_old_images, retention_hours)
        LOGGER.info("Deleted %s images older than %sh", deleted, retention_hours)
