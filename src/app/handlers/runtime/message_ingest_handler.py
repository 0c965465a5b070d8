from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Any

from telegram.error import TelegramError

from src.app.handlers.runtime.jpeg_check import is_jpeg_bytes, to_image_content
from src.app.messages import msg
from src.storage.database import now_ms
from src.storage.models import ANONYMOUS_NAME, MessageRecord, build_message_link

if TYPE_CHECKING:
    from telegram import Message, Update
    from telegram.ext import ContextTypes

    from src.app.bot_orchestrator import SummaryBot


LOGGER = logging.getLogger(__name__)

GROUP_CHAT_TYPES = {"group", "supergroup"}
_BARE_URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)


def sender_name(message: Any) -> str:
    sender_chat = getattr(message, "sender_chat", None)
    title = getattr(sender_chat, "title", None)
    if title:
        return str(title)
    user = getattr(message, "from_user", None)
    first_name = getattr(user, "first_name", None)
    return str(first_name) if first_name else ANONYMOUS_NAME


def forward_origin_name(message: Any) -> str:
    origin = getattr(message, "forward_origin", None)
    if origin is None:
        return ""
    for attr in ("sender_user", "sender_chat", "chat"):
        entity = getattr(origin, attr, None)
        if entity is None:
            continue
        name = getattr(entity, "title", None) or getattr(entity, "first_name", None) or getattr(entity, "username", None)
        if name:
            return str(name)
    hidden = getattr(origin, "sender_user_name", None)
    return str(hidden) if hidden else ANONYMOUS_NAME


def is_bare_url(text: str) -> bool:
    return bool(_BARE_URL_PATTERN.match(text.strip()))


class MessageIngestHandler:
    def __init__(self, bot: "SummaryBot") -> None:
        self.bot = bot

    async def ingest_message(self, update: "Update", context: "ContextTypes.DEFAULT_TYPE") -> None:
        message = update.message
        if message is None:
            return
        text = (message.text or message.caption or "").strip()
        if message.chat.type not in GROUP_CHAT_TYPES:
            if text and not text.startswith("/"):
                await message.reply_text(msg("group_only"))
            return

        if message.photo:
            content = await self.photo_content(message, context)
        else:
            if not self.should_store_text(text):
                return
            content = await self.annotate_text(message, text)
        if not content:
            return
        await self.save(message, content)

    async def ingest_edited_message(self, update: "Update", context: "ContextTypes.DEFAULT_TYPE") -> None:
        del context
        message = update.edited_message
        if message is None or message.chat.type not in GROUP_CHAT_TYPES:
            return
        text = (message.text or message.caption or "").strip()
        if not self.should_store_text(text):
            return
        await self.save(message, text)

    def should_store_text(self, text: str) -> bool:
        if not text or text.startswith("/"):
            return False
        return text not in set(self.bot.settings.ignored_keywords)

    async def annotate_text(self, message: "Message", text: str) -> str:
        if is_bare_url(text) and self.bot.settings.link_preview_enabled:
            return await asyncio.to_thread(self.bot.link_preview.describe, text)

        content = text
        replied = getattr(message, "reply_to_message", None)
        if replied is not None and getattr(replied, "message_id", None):
            link = build_message_link(message.chat.id, replied.message_id)
            content = f"replied to {link}: {content}"
        origin = forward_origin_name(message)
        if origin:
            content = f"forwarded from {origin}: {content}"
        return content

    async def photo_content(self, message: "Message", context: "ContextTypes.DEFAULT_TYPE") -> str:
        largest = message.photo[-1]
        try:
            telegram_file = await context.bot.get_file(largest.file_id)
            data = bytes(await telegram_file.download_as_bytearray())
        except TelegramError as exc:
            LOGGER.warning("Could not download photo %s: %s", message.message_id, exc)
            return ""
        if not is_jpeg_bytes(data):
            LOGGER.warning("Photo %s in %s is not a JPEG; skipped", message.message_id, message.chat.id)
            return ""
        return to_image_content(data)

    async def save(self, message: "Message", content: str) -> None:
        record = MessageRecord.create(
            group_id=message.chat.id,
            message_id=message.message_id,
            user_name=sender_name(message),
            content=content,
            timestamp=now_ms(),
            group_name=getattr(message.chat, "title", None),
        )
        await asyncio.to_thread(self.bot.db.save_message, record)
