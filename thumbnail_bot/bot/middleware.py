"""Middleware for logging and error handling."""

import logging
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware, Bot
from aiogram.types import CallbackQuery, Message, TelegramObject

from thumbnail_bot.config import get_config

logger = logging.getLogger(__name__)


def _chat_id(event: TelegramObject) -> int | None:
    if isinstance(event, Message):
        return event.chat.id
    if isinstance(event, CallbackQuery) and event.message is not None:
        return event.message.chat.id
    return None


class LoggingMiddleware(BaseMiddleware):
    """Middleware for logging user actions."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Log user action."""
        chat_id = _chat_id(event)

        # Get current conversation step
        current_step = "NONE"
        sessions = data.get("sessions")
        if sessions is not None and chat_id is not None:
            step = sessions.step_of(chat_id)
            current_step = step.value if step else "NONE"

        if isinstance(event, Message):
            username = event.from_user.username if event.from_user else None
            text = event.text or (event.caption or "")
            logger.info(
                f"[CHAT {chat_id}] (@{username}) [STEP: {current_step}] "
                f"Content: {event.content_type} - {text[:100]}"
            )
        elif isinstance(event, CallbackQuery):
            username = event.from_user.username if event.from_user else None
            logger.info(f"[CHAT {chat_id}] (@{username}) [STEP: {current_step}] Callback: {event.data}")

        return await handler(event, data)


class ErrorHandlerMiddleware(BaseMiddleware):
    """Middleware for error handling and owner notifications."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Handle errors and notify owner."""
        try:
            return await handler(event, data)
        except Exception as e:
            logger.error(f"Error in handler: {e}", exc_info=True)
            bot: Bot | None = data.get("bot")
            chat_id = _chat_id(event)

            # Try to send error message to user
            if bot is not None and chat_id is not None:
                try:
                    await bot.send_message(
                        chat_id,
                        "❌ Something went wrong. Try again or use /start to begin again.",
                    )
                except Exception as send_error:
                    logger.error(f"Failed to notify user: {send_error}")

            # Notify owner about critical errors
            owner_id = get_config().telegram.owner_id
            if bot is not None and owner_id:
                try:
                    await bot.send_message(
                        chat_id=owner_id,
                        text=(
                            f"⚠️ Bot error:\n"
                            f"Type: {type(e).__name__}\n"
                            f"Message: {e}\n"
                            f"Chat: {chat_id if chat_id is not None else 'N/A'}"
                        ),
                    )
                except Exception as notify_error:
                    logger.error(f"Failed to notify owner: {notify_error}")

            # Re-raise to let aiogram handle it
            raise
