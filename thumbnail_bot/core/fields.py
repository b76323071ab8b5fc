"""Field set collected during the conversation."""

from pydantic import BaseModel, Field


class ImageItem(BaseModel):
    """Attached image with its description."""

    content: bytes = b""
    description: str = ""
    filename: str = "image.jpg"
    content_type: str = "image/jpeg"

    @property
    def is_present(self) -> bool:
        """An item without file content does not count as attached."""
        return bool(self.content)


class FieldSet(BaseModel):
    """Evolving thumbnail request payload.

    Every field is updated independently; empty strings mean "unset".
    """

    background: ImageItem | None = None
    major: ImageItem | None = None
    icons: list[ImageItem] = Field(default_factory=list)
    theme_color: str = ""
    category: str = ""
    final_description: str = ""

    def present_icons(self) -> list[ImageItem]:
        """Get icons that actually carry a file."""
        return [icon for icon in self.icons if icon.is_present]

    def attached_images(self) -> list[tuple[str, ImageItem]]:
        """Get all present images labelled by slot, in upload order of slots."""
        images: list[tuple[str, ImageItem]] = []
        if self.background is not None and self.background.is_present:
            images.append(("background", self.background))
        if self.major is not None and self.major.is_present:
            images.append(("major", self.major))
        for index, icon in enumerate(self.icons, 1):
            if icon.is_present:
                images.append((f"icon {index}", icon))
        return images
