"""Handlers for actions on a generated thumbnail."""

import logging

from aiogram import Bot, F, Router
from aiogram.types import BufferedInputFile, CallbackQuery

from thumbnail_bot.bot.sessions import SessionRegistry
from thumbnail_bot.core.machine import DOWNLOAD

logger = logging.getLogger(__name__)

router = Router()


@router.callback_query(F.data == f"opt:{DOWNLOAD}")
async def on_download(callback: CallbackQuery, bot: Bot, sessions: SessionRegistry) -> None:
    """Send the current thumbnail as a file."""
    if callback.message is None:
        await callback.answer()
        return
    chat_id = callback.message.chat.id
    await callback.answer("⬇️ Downloading...")

    content = await sessions.get(chat_id).controller.request_download()
    if content is None:
        return

    await bot.send_document(chat_id, BufferedInputFile(content, filename="thumbnail.png"))
    logger.info(f"[CHAT {chat_id}] Sent thumbnail file ({len(content)} bytes)")
