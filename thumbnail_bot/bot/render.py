"""Sends new timeline messages to Telegram."""

import asyncio
import logging
import re

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import ForceReply, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from thumbnail_bot.bot.sessions import ChatSession
from thumbnail_bot.core.timeline import Message, MessageKind, Sender

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"#[0-9a-fA-F]{6}")

IMAGE_HELP = (
    "\n\n📎 Send a photo with a caption:\n"
    "• <code>background: description</code>\n"
    "• <code>major: description</code>\n"
    "• <code>icon: description</code> (no prefix also means icon)\n\n"
    "✏️ <code>icon 2: new description</code> changes a description, "
    "<code>remove icon 2</code> removes an icon."
)


def options_keyboard(message: Message, columns: int = 1) -> InlineKeyboardMarkup | None:
    options = message.options
    if not options:
        return None
    builder = InlineKeyboardBuilder()
    for option in options:
        builder.button(text=option.label, callback_data=f"opt:{option.id}")
    builder.adjust(columns)
    return builder.as_markup()


def gradient_label(gradient: str) -> str:
    """Short button label for a CSS gradient descriptor."""
    stops = HEX_COLOR.findall(gradient)
    return "→".join(stops[:2]) if stops else gradient[:20]


def style_keyboard(message: Message) -> InlineKeyboardMarkup:
    payload = message.payload or {}
    builder = InlineKeyboardBuilder()
    sizes: list[int] = []

    colors = payload.get("colors", [])
    for index, color in enumerate(colors):
        builder.button(text=color, callback_data=f"color:s{index}")
    sizes += [5] * ((len(colors) + 4) // 5)

    gradients = payload.get("gradients", [])
    for index, gradient in enumerate(gradients):
        builder.button(text=f"🌈 {gradient_label(gradient)}", callback_data=f"color:g{index}")
    sizes += [2] * ((len(gradients) + 1) // 2)

    categories = payload.get("categories", [])
    for category in categories:
        builder.button(text=f"{category['icon']} {category['name']}", callback_data=f"cat:{category['id']}")
    sizes += [3] * ((len(categories) + 2) // 3)

    for option in message.options:
        builder.button(text=option.label, callback_data=f"opt:{option.id}")
    sizes.append(1)

    builder.adjust(*sizes)
    return builder.as_markup()


async def send_message(bot: Bot, chat_id: int, message: Message, placeholder: str | None = None) -> None:
    """Render one bot message according to its kind.

    Args:
        bot: Telegram bot instance
        chat_id: Target chat
        message: Timeline message to send
        placeholder: Input hint for a prompt that expects free text
    """
    if message.kind is MessageKind.RESULT_DISPLAY:
        url = (message.payload or {}).get("url", "")
        markup = options_keyboard(message, columns=2)
        try:
            await bot.send_photo(chat_id, photo=url, caption=message.content, reply_markup=markup)
        except TelegramBadRequest as e:
            logger.warning(f"[CHAT {chat_id}] Failed to send photo by URL, sending link: {e}")
            await bot.send_message(chat_id, f"{message.content}\n{url}", reply_markup=markup)
        return

    if message.kind is MessageKind.STYLE_INPUTS_WIDGET:
        await bot.send_message(chat_id, message.content, reply_markup=style_keyboard(message))
        return

    if message.kind is MessageKind.IMAGE_COLLECTION_WIDGET:
        await bot.send_message(
            chat_id,
            message.content + IMAGE_HELP,
            reply_markup=options_keyboard(message),
            parse_mode="HTML",
        )
        return

    markup = options_keyboard(message)
    if markup is None and placeholder:
        markup = ForceReply(input_field_placeholder=placeholder[:64])
    await bot.send_message(chat_id, message.content, reply_markup=markup)


async def render_pending(bot: Bot, chat: ChatSession, delay: float = 0.0) -> None:
    """Send bot messages appended since the last render, paced by ``delay``.

    Renders of one chat run one at a time so messages keep timeline order.
    """
    async with chat.lock:
        controller = chat.controller
        if chat.epoch != controller.epoch:
            # Started over: the timeline is a new one
            chat.epoch = controller.epoch
            chat.rendered = 0

        messages = controller.messages
        pending = [m for m in messages[chat.rendered:] if m.sender is Sender.BOT]
        chat.rendered = len(messages)
        placeholder = controller.placeholder if controller.input_enabled else None

        for index, message in enumerate(pending):
            if delay:
                await asyncio.sleep(delay)
            last = index == len(pending) - 1
            await send_message(bot, chat.chat_id, message, placeholder if last else None)
