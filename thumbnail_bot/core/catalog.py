"""Style presets offered by the style step."""

from typing import NamedTuple


class Category(NamedTuple):
    id: str
    name: str
    icon: str


CATEGORIES: tuple[Category, ...] = (
    Category("lifestyle", "Lifestyle", "🌟"),
    Category("technology", "Technology", "💻"),
    Category("entertainment", "Entertainment", "🎬"),
    Category("gaming", "Gaming", "🎮"),
    Category("education", "Education", "📚"),
    Category("news", "News", "📰"),
)

CATEGORY_IDS = frozenset(category.id for category in CATEGORIES)

PRESET_COLORS: tuple[str, ...] = (
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7",
    "#DDA0DD", "#98D8C8", "#F7DC6F", "#BB8FCE", "#85C1E9",
)

GRADIENT_COLORS: tuple[str, ...] = (
    "linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
    "linear-gradient(135deg, #f093fb 0%, #f5576c 100%)",
    "linear-gradient(135deg, #4facfe 0%, #00f2fe 100%)",
    "linear-gradient(135deg, #43e97b 0%, #38f9d7 100%)",
    "linear-gradient(135deg, #fa709a 0%, #fee140 100%)",
    "linear-gradient(135deg, #a8edea 0%, #fed6e3 100%)",
    "linear-gradient(135deg, #ffecd2 0%, #fcb69f 100%)",
    "linear-gradient(135deg, #ff9a9e 0%, #fecfef 100%)",
    "linear-gradient(135deg, #a1c4fd 0%, #c2e9fb 100%)",
    "linear-gradient(135deg, #fbc2eb 0%, #a6c1ee 100%)",
)


def category_label(category_id: str) -> str:
    """Get display label for a category id (the id itself if unknown)."""
    for category in CATEGORIES:
        if category.id == category_id:
            return f"{category.icon} {category.name}"
    return category_id
