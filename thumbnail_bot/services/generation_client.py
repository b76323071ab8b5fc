"""Client for the thumbnail generation service."""

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from thumbnail_bot.config import GenerationServiceConfig, get_config
from thumbnail_bot.core.events import GenerationResult
from thumbnail_bot.core.fields import FieldSet, ImageItem

logger = logging.getLogger(__name__)

MultipartField = tuple[str, tuple[str | None, str | bytes] | tuple[str, bytes, str]]


def _text(name: str, value: str) -> MultipartField:
    # No filename: sent as a plain form field inside the multipart body
    return (name, (None, value))


def _file(name: str, item: ImageItem) -> MultipartField:
    return (name, (item.filename, item.content, item.content_type))


def build_generation_form(fields: FieldSet) -> list[MultipartField]:
    """Build multipart parts for a generation request.

    Required text fields are always sent; files and their descriptions only
    when present. ``imgDescriptions`` is a JSON array with one entry per icon.
    """
    parts: list[MultipartField] = [
        _text("finalDescription", fields.final_description),
        _text("themeColor", fields.theme_color),
        _text("category", fields.category),
    ]

    background = fields.background
    if background is not None and background.is_present:
        parts.append(_file("bgImg", background))
        if background.description:
            parts.append(_text("bgImgDescription", background.description))

    major = fields.major
    if major is not None and major.is_present:
        parts.append(_file("majorImg", major))
        if major.description:
            parts.append(_text("majorImgDescription", major.description))

    icons = fields.present_icons()
    if icons:
        for icon in icons:
            parts.append(_file("imgIcons", icon))
        parts.append(_text("imgDescriptions", json.dumps([icon.description for icon in icons])))

    return parts


class GenerationClient:
    """Client for the generation and follow-up endpoints.

    Every call resolves to a ``GenerationResult``; transport and service
    errors are reported as unsuccessful results instead of exceptions.
    """

    def __init__(
        self,
        config: GenerationServiceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize generation client.

        Args:
            config: Generation service configuration. If None, uses global config.
            transport: Optional httpx transport (used by tests).
        """
        self.config = config or get_config().generation
        self.timeout = httpx.Timeout(self.config.timeout)
        self._transport = transport
        logger.info(f"Generation Client initialized: {self.config.base_url}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def generate(self, fields: FieldSet) -> GenerationResult:
        """Submit collected fields for thumbnail generation.

        Args:
            fields: Collected field set

        Returns:
            Normalized generation result
        """
        parts = build_generation_form(fields)
        logger.info(
            f"Generation: Sending request to {self.config.generate_url} "
            f"(category={fields.category}, icons={len(fields.present_icons())}, "
            f"description={len(fields.final_description)} chars)"
        )
        return await self._post(self.config.generate_url, parts)

    async def follow_up(self, instruction: str, image_url: str) -> GenerationResult:
        """Ask the service to revise a previously generated image.

        Args:
            instruction: What to change
            image_url: URL of the image to revise

        Returns:
            Normalized generation result
        """
        parts = [_text("instruction", instruction), _text("imageUrl", image_url)]
        logger.info(f"Follow-up: Sending request to {self.config.follow_up_url} for {image_url}")
        return await self._post(self.config.follow_up_url, parts)

    async def download(self, url: str) -> bytes | None:
        """Download generated image bytes.

        Returns:
            Image bytes, or None if error
        """
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                logger.info(f"Downloaded {len(response.content)} bytes from {url}")
                return response.content
        except httpx.HTTPError as e:
            logger.error(f"Error downloading {url}: {e}", exc_info=True)
            return None

    async def _post(self, url: str, parts: list[MultipartField]) -> GenerationResult:
        async with self._client() as client:
            try:
                response = await client.post(url, files=parts)
                logger.info(f"Generation service response status: {response.status_code}")
                response.raise_for_status()

                body: dict[str, Any] = response.json()
                result = GenerationResult.model_validate(body)

            except httpx.TimeoutException as e:
                logger.error(f"Timeout calling generation service: {e}", exc_info=True)
                return GenerationResult(success=False, error="Request timed out")
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"HTTP error from generation service: {e.response.status_code} - {e.response.text[:200]}",
                    exc_info=True,
                )
                return GenerationResult(success=False, error=f"HTTP error! status: {e.response.status_code}")
            except httpx.HTTPError as e:
                logger.error(f"Error calling generation service: {e}", exc_info=True)
                return GenerationResult(success=False, error=str(e) or type(e).__name__)
            except (ValueError, ValidationError) as e:
                logger.error(f"Invalid response from generation service: {e}", exc_info=True)
                return GenerationResult(success=False, error="Invalid response from generation service")

        if result.success and not result.url:
            logger.warning(f"Generation service reported success without URL: {body}")
            return GenerationResult(success=False, message=result.message, error="No image URL in response")

        logger.info(f"Generation service result: success={result.success}, url={result.url}")
        return result


# Singleton instance
_generation_client: GenerationClient | None = None


def get_generation_client() -> GenerationClient:
    """Get generation client singleton instance."""
    global _generation_client
    if _generation_client is None:
        _generation_client = GenerationClient()
    return _generation_client
