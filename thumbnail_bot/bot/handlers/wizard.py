"""Handlers for the guided conversation: options, style pickers, images and text."""

import logging
import re

from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, Message

from thumbnail_bot.bot.sessions import SessionRegistry
from thumbnail_bot.core.catalog import GRADIENT_COLORS, PRESET_COLORS
from thumbnail_bot.core.machine import FOLLOW_UP, Step
from thumbnail_bot.utils.file_handler import download_image, parse_caption

logger = logging.getLogger(__name__)

router = Router()

DESCRIBE_PATTERN = re.compile(r"^\s*(background|bg|major|icon\s*(\d+))\s*:\s*(.+)$", re.IGNORECASE | re.DOTALL)
REMOVE_ICON_PATTERN = re.compile(r"^\s*remove\s+icon\s+(\d+)\s*$", re.IGNORECASE)

# Buttons that stay usable after a click
PERSISTENT_OPTIONS = {FOLLOW_UP}


@router.callback_query(F.data.startswith("opt:"))
async def on_option(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    """Handle option buttons."""
    if callback.message is None:
        await callback.answer()
        return
    option_id = callback.data.removeprefix("opt:")
    chat_id = callback.message.chat.id
    await callback.answer()

    logger.info(f"[CHAT {chat_id}] Option clicked: {option_id}")
    controller = sessions.get(chat_id).controller
    await controller.select_option(option_id)

    # A rejected click leaves the widget usable for another try
    if option_id in PERSISTENT_OPTIONS or controller.offers_option(option_id):
        return
    try:
        await callback.message.edit_reply_markup(reply_markup=None)
    except TelegramBadRequest as e:
        logger.debug(f"[CHAT {chat_id}] Could not remove keyboard: {e}")


@router.callback_query(F.data.startswith("color:"))
async def on_color(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    """Handle theme color buttons (``color:s<index>`` flat, ``color:g<index>`` gradient)."""
    if callback.message is None:
        await callback.answer()
        return
    code = callback.data.removeprefix("color:")
    palette = PRESET_COLORS if code.startswith("s") else GRADIENT_COLORS
    try:
        color = palette[int(code[1:])]
    except (ValueError, IndexError):
        logger.warning(f"[CHAT {callback.message.chat.id}] Unknown color code: {code}")
        await callback.answer("Unknown color")
        return

    await callback.answer()
    await sessions.get(callback.message.chat.id).controller.update_field("theme_color", color)


@router.callback_query(F.data.startswith("cat:"))
async def on_category(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    """Handle category buttons."""
    if callback.message is None:
        await callback.answer()
        return
    await callback.answer()
    category = callback.data.removeprefix("cat:")
    await sessions.get(callback.message.chat.id).controller.update_field("category", category)


@router.message(F.photo | F.document)
async def handle_image(message: Message, bot: Bot, sessions: SessionRegistry) -> None:
    """Handle uploaded images; the caption selects slot and description."""
    chat = sessions.get(message.chat.id)
    if chat.controller.step is not Step.COLLECT_IMAGES:
        await message.answer("📸 Images can only be added at the image step. Use /reset to start over.")
        return

    slot, description = parse_caption(message.caption)
    logger.info(f"[CHAT {message.chat.id}] [STEP: {chat.controller.step.value}] Image for slot {slot}")

    item = await download_image(bot, message, description)
    if item is None:
        await message.answer("❌ Couldn't download the image. Please try again.")
        return
    await chat.controller.update_field(slot, item)


@router.message(F.text)
async def handle_text(message: Message, sessions: SessionRegistry) -> None:
    """Handle free text: descriptions, follow-ups and image-step commands."""
    chat = sessions.get(message.chat.id)
    controller = chat.controller
    text = message.text or ""
    logger.info(f"[CHAT {message.chat.id}] [STEP: {controller.step.value}] Text: {text[:100]}")

    if controller.step is Step.COLLECT_IMAGES:
        remove = REMOVE_ICON_PATTERN.match(text)
        if remove:
            await controller.update_field("remove_icon", int(remove.group(1)))
            return
        describe = DESCRIBE_PATTERN.match(text)
        if describe:
            slot, icon_number, description = describe.groups()
            description = description.strip()
            if icon_number:
                await controller.update_field("icon_description", (int(icon_number), description))
            elif slot.lower() == "major":
                await controller.update_field("major_description", description)
            else:
                await controller.update_field("background_description", description)
            return

    await controller.submit_text(text)
