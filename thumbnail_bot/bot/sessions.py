"""In-memory conversation sessions, one per chat."""

import asyncio
import logging
from dataclasses import dataclass, field

from aiogram import Bot

from thumbnail_bot.config import ConversationConfig
from thumbnail_bot.core.machine import Step
from thumbnail_bot.core.session import SessionController, ThumbnailService

logger = logging.getLogger(__name__)


@dataclass
class ChatSession:
    """Conversation of one chat plus how much of it was already sent."""

    chat_id: int
    controller: SessionController = field(init=False)
    rendered: int = 0
    epoch: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class SessionRegistry:
    """Creates and keeps a session per chat. Nothing survives a restart."""

    def __init__(self, bot: Bot, client: ThumbnailService, limits: ConversationConfig):
        self.bot = bot
        self.client = client
        self.limits = limits
        self._sessions: dict[int, ChatSession] = {}

    def get(self, chat_id: int) -> ChatSession:
        """Get session for chat, starting a new conversation if needed."""
        session = self._sessions.get(chat_id)
        if session is None:
            from thumbnail_bot.bot.render import render_pending

            session = ChatSession(chat_id=chat_id)

            async def listener(controller: SessionController) -> None:
                await render_pending(self.bot, session, self.limits.message_delay)

            session.controller = SessionController(self.client, self.limits, listener)
            self._sessions[chat_id] = session
            logger.info(f"[CHAT {chat_id}] New conversation session")
        return session

    def step_of(self, chat_id: int) -> Step | None:
        """Current step of a chat without creating a session."""
        session = self._sessions.get(chat_id)
        return session.controller.step if session else None
