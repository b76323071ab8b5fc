"""File handling utilities for Telegram bot."""

import logging
import mimetypes
import re

from aiogram import Bot
from aiogram.types import Message

from thumbnail_bot.core.fields import ImageItem

logger = logging.getLogger(__name__)

CAPTION_PATTERN = re.compile(r"^\s*(background|bg|major|icon)\s*[:\-]\s*(.*)$", re.IGNORECASE | re.DOTALL)

SLOT_ALIASES = {"bg": "background"}


def parse_caption(caption: str | None) -> tuple[str, str]:
    """Split a photo caption into image slot and description.

    ``"background: neon city"`` -> ``("background", "neon city")``; a caption
    without a slot prefix describes an icon.
    """
    text = (caption or "").strip()
    match = CAPTION_PATTERN.match(text)
    if not match:
        return "icon", text
    slot = match.group(1).lower()
    return SLOT_ALIASES.get(slot, slot), match.group(2).strip()


async def download_image(bot: Bot, message: Message, description: str = "") -> ImageItem | None:
    """Download photo or document from Telegram message.

    Args:
        bot: Telegram bot instance
        message: Message with photo or document
        description: Description attached to the image

    Returns:
        Downloaded image, or None if error
    """
    if message.photo:
        # Get largest photo
        photo = message.photo[-1]
        file_id = photo.file_id
        filename = f"photo_{photo.file_unique_id}.jpg"
        content_type = "image/jpeg"
    elif message.document:
        document = message.document
        file_id = document.file_id
        filename = document.file_name or f"document_{document.file_unique_id}"
        content_type = document.mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
    else:
        return None

    try:
        buffer = await bot.download(file_id)
        if buffer is None:
            return None
        content = buffer.read()
    except Exception as e:
        logger.error(f"Error downloading {filename}: {e}", exc_info=True)
        return None

    logger.info(f"File downloaded: {filename}, size: {len(content)}, type: {content_type}")
    return ImageItem(content=content, description=description, filename=filename, content_type=content_type)
