"""Handler for /start and /reset commands."""

import logging

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from thumbnail_bot.bot.sessions import SessionRegistry

logger = logging.getLogger(__name__)

router = Router()


@router.message(CommandStart())
@router.message(Command("reset"))
async def cmd_start(message: Message, sessions: SessionRegistry) -> None:
    """Start a fresh conversation (start over)."""
    chat = sessions.get(message.chat.id)
    logger.info(f"[CHAT {message.chat.id}] [COMMAND: {message.text}] Starting over")
    await chat.controller.reset()
