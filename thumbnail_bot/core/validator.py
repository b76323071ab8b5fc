"""Validation rules checked before the conversation advances.

All functions are pure: they inspect a field set (or a piece of text) and
return an ordered list of human-readable violations. An empty list means the
step may advance.
"""

from thumbnail_bot.core.catalog import CATEGORY_IDS
from thumbnail_bot.core.fields import FieldSet, ImageItem

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_CONTENT_TYPE_PREFIX = "image/"
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500
FOLLOW_UP_MIN_LENGTH = 5


def validate_image(
    item: ImageItem,
    max_bytes: int = DEFAULT_MAX_FILE_BYTES,
    content_type_prefix: str = DEFAULT_CONTENT_TYPE_PREFIX,
) -> list[str]:
    """Check a single attached file against size and type rules."""
    violations: list[str] = []
    if len(item.content) > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        violations.append(f"{item.filename}: file too large (limit {limit_mb:g} MB)")
    if not item.content_type.lower().startswith(content_type_prefix):
        violations.append(f"{item.filename}: not a valid image")
    return violations


def validate_images(
    fields: FieldSet,
    max_bytes: int = DEFAULT_MAX_FILE_BYTES,
    content_type_prefix: str = DEFAULT_CONTENT_TYPE_PREFIX,
) -> list[str]:
    """Check every attached image and the icon descriptions."""
    violations: list[str] = []
    for _, item in fields.attached_images():
        violations.extend(validate_image(item, max_bytes, content_type_prefix))

    for index, icon in enumerate(fields.icons, 1):
        if icon.is_present and not icon.description.strip():
            violations.append(f"Icon {index} needs a description")
    return violations


def validate_style(fields: FieldSet) -> list[str]:
    """Theme color and category are both required."""
    violations: list[str] = []
    if not fields.theme_color:
        violations.append("Please select a theme color")
    if not fields.category:
        violations.append("Please select a category")
    elif fields.category not in CATEGORY_IDS:
        violations.append(f"Unknown category: {fields.category}")
    return violations


def validate_description(
    text: str,
    min_length: int = DESCRIPTION_MIN_LENGTH,
    max_length: int = DESCRIPTION_MAX_LENGTH,
) -> list[str]:
    """Trimmed length must lie within [min_length, max_length]."""
    length = len(text.strip())
    if length < min_length:
        return [
            f"Description is too short: at least {min_length} characters required (got {length})"
        ]
    if length > max_length:
        return [
            f"Description is too long: at most {max_length} characters allowed (got {length})"
        ]
    return []


def validate_follow_up(text: str, min_length: int = FOLLOW_UP_MIN_LENGTH) -> list[str]:
    length = len(text.strip())
    if length < min_length:
        return [
            f"Edit request is too short: at least {min_length} characters required (got {length})"
        ]
    return []
