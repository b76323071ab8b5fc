"""Session controller: drives the state machine and runs its effects."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from thumbnail_bot.config import ConversationConfig
from thumbnail_bot.core import machine
from thumbnail_bot.core.events import (
    DownloadEffect,
    DownloadFailed,
    DownloadRequested,
    Event,
    FieldUpdated,
    FollowUpEffect,
    FollowUpSettled,
    GenerateEffect,
    GenerationResult,
    GenerationSettled,
    OptionSelected,
    ResetRequested,
    TextSubmitted,
)
from thumbnail_bot.core.fields import FieldSet
from thumbnail_bot.core.machine import Step
from thumbnail_bot.core.timeline import Message

logger = logging.getLogger(__name__)


class ThumbnailService(Protocol):
    async def generate(self, fields: FieldSet) -> GenerationResult: ...

    async def follow_up(self, instruction: str, image_url: str) -> GenerationResult: ...

    async def download(self, url: str) -> bytes | None: ...


Listener = Callable[["SessionController"], Awaitable[None]]


class SessionController:
    """Owns one conversation and is the only code that mutates it.

    Each handler turns a user action into an event, applies it to the state
    machine, notifies the listener (so the presentation can show e.g. the
    "working" message right away) and then executes the returned effects. A
    settled network call is fed back into the machine as a new event.
    """

    def __init__(
        self,
        client: ThumbnailService | None = None,
        limits: ConversationConfig | None = None,
        listener: Listener | None = None,
    ):
        """Initialize session controller.

        Args:
            client: Generation service client. If None, uses the global client.
            limits: Conversation limits. If None, uses defaults.
            listener: Optional async callback invoked after every transition.
        """
        self._client = client
        self._state = machine.new_conversation(limits)
        self._listener = listener

    @property
    def client(self) -> ThumbnailService:
        if self._client is None:
            from thumbnail_bot.services.generation_client import get_generation_client

            self._client = get_generation_client()
        return self._client

    # Presentation-facing surface

    @property
    def step(self) -> Step:
        return self._state.step

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._state.timeline.snapshot()

    @property
    def input_enabled(self) -> bool:
        return machine.input_enabled(self._state)

    @property
    def placeholder(self) -> str:
        return machine.placeholder(self._state)

    @property
    def current_image_url(self) -> str | None:
        return self._state.generated_url

    @property
    def follow_up_open(self) -> bool:
        return self._state.follow_up_open

    @property
    def epoch(self) -> int:
        return self._state.epoch

    @property
    def fields(self) -> FieldSet:
        """Copy of the collected fields."""
        return self._state.fields.model_copy(deep=True)

    def can_submit(self, text: str) -> bool:
        return machine.can_submit(self._state, text)

    def offers_option(self, option_id: str) -> bool:
        return machine.offers_option(self._state, option_id)

    # Handlers

    async def select_option(self, option_id: str) -> bytes | None:
        """Handle an option click. Returns image bytes for the download option."""
        return await self._dispatch(OptionSelected(option_id))

    async def update_field(self, name: str, value: Any) -> None:
        await self._dispatch(FieldUpdated(name, value))

    async def submit_text(self, text: str) -> None:
        await self._dispatch(TextSubmitted(text))

    async def request_download(self) -> bytes | None:
        """Fetch the current image. Returns None if there is nothing to download."""
        return await self._dispatch(DownloadRequested())

    async def reset(self) -> None:
        """Start over with a fresh conversation."""
        await self._dispatch(ResetRequested())

    # Driver

    async def _dispatch(self, event: Event) -> bytes | None:
        effects = machine.apply(self._state, event)
        await self._notify()

        downloaded: bytes | None = None
        for effect in effects:
            if isinstance(effect, GenerateEffect):
                result = await self._call(self.client.generate, effect.fields)
                await self._dispatch(GenerationSettled(result, effect.epoch))
            elif isinstance(effect, FollowUpEffect):
                result = await self._call(self.client.follow_up, effect.instruction, effect.image_url)
                await self._dispatch(FollowUpSettled(result, effect.epoch))
            elif isinstance(effect, DownloadEffect):
                downloaded = await self.client.download(effect.image_url)
                if downloaded is None:
                    await self._dispatch(DownloadFailed(effect.image_url))
        return downloaded

    async def _call(self, method: Callable[..., Awaitable[GenerationResult]], *args: Any) -> GenerationResult:
        try:
            return await method(*args)
        except Exception as e:
            # Any client failure must still settle the request
            logger.error(f"Generation service call failed: {e}", exc_info=True)
            return GenerationResult(success=False, error=f"{type(e).__name__}: {e}")

    async def _notify(self) -> None:
        if self._listener is None:
            return
        try:
            await self._listener(self)
        except Exception as e:
            # Effects still have to run or the session would stay in "generating"
            logger.error(f"Session listener failed: {e}", exc_info=True)
