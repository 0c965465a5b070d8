from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from src.app.handlers.commands.summary_query_handler import SummaryQueryHandler
from src.app.handlers.reply_formatting import ReplyComposer
from src.app.handlers.runtime.message_ingest_handler import MessageIngestHandler
from src.app.handlers.services.activity_snapshot import ActivitySnapshotCache
from src.app.handlers.services.background_tasks import BackgroundTasks
from src.app.handlers.services.scheduler_jobs import JobRunner
from src.app.handlers.services.summary_orchestrator import SummaryOrchestrator
from src.clients.link_preview import LinkPreviewClient
from src.clients.llm_client import ChatCompletionClient
from src.core.config import Settings
from src.storage.database import Database


LOGGER = logging.getLogger(__name__)


class SummaryBot:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.db = Database(settings.db_path)
        self.llm = ChatCompletionClient(
            settings.llm_base_url,
            settings.llm_api_key,
            settings.llm_model,
            temperature=settings.llm_temperature,
            request_timeout_seconds=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
        )
        self.composer = ReplyComposer(
            settings.llm_model,
            link_prefix=settings.link_reference_prefix,
            footer_url=settings.repo_url,
        )
        self._llm_task_lock = asyncio.Lock()
        self.background = BackgroundTasks()
        self.activity_cache = ActivitySnapshotCache(
            self.db,
            settings.active_groups_cache_ttl_seconds,
            background=self.background,
        )
        self.summary_orchestrator = SummaryOrchestrator(
            self.db,
            self.llm,
            self.composer,
            run_llm_task=self.run_llm_task,
        )
        self.link_preview = LinkPreviewClient()
        self.scheduler = AsyncIOScheduler(timezone=settings.default_timezone)
        self.app = (
            Application.builder()
            .token(settings.telegram_bot_token)
            .post_init(self._on_startup)
            .post_shutdown(self._on_shutdown)
            .build()
        )
        self.job_runner = JobRunner(self)
        self.message_ingest_handler = MessageIngestHandler(self)
        self.summary_query_handler = SummaryQueryHandler(self)
        self._register_handlers()
        self._register_jobs()

    def _register_handlers(self) -> None:
        commands = self.summary_query_handler
        self.app.add_handler(
            MessageHandler(filters.UpdateType.MESSAGE, self.message_ingest_handler.ingest_message),
            group=-1,
        )
        self.app.add_handler(
            MessageHandler(filters.UpdateType.EDITED_MESSAGE, self.message_ingest_handler.ingest_edited_message),
            group=-1,
        )
        self.app.add_handler(CommandHandler("summary", commands.summary_command))
        self.app.add_handler(CommandHandler("query", commands.query_command))
        self.app.add_handler(CommandHandler("ask", commands.ask_command))
        self.app.add_handler(CommandHandler("status", commands.status_command))
        self.app.add_handler(CommandHandler("version", commands.version_command))
        self.app.add_handler(CommandHandler(["help", "start"], commands.help_command))

    def _register_jobs(self) -> None:
        interval = self.settings.summary_interval_minutes
        self.scheduler.add_job(
            self.job_runner.run_summary_tick,
            "cron",
            minute=f"*/{interval}",
            max_instances=1,
            coalesce=True,
        )

    async def _on_startup(self, application: Application) -> None:
        del application
        self.scheduler.start()
        LOGGER.info(
            "Summary schedule started: every %s minutes across %s shards (%s)",
            self.settings.summary_interval_minutes,
            self.settings.summary_shard_count,
            self.settings.default_timezone,
        )

    async def _on_shutdown(self, application: Application) -> None:
        del application
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self.background.drain()
        self.db.close()

    def run_polling(self) -> None:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("telegram").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)
        self.app.run_polling(drop_pending_updates=True)

    async def run_llm_task(self, func, *args, **kwargs):
        async with self._llm_task_lock:
            return await asyncio.to_thread(func, *args, **kwargs)
