"""Events fed into the state machine and effects it asks the driver to run."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from thumbnail_bot.core.fields import FieldSet


class GenerationResult(BaseModel):
    """Uniform outcome of a generation or follow-up call."""

    success: bool
    url: str | None = None
    message: str | None = None
    error: str | None = None

    @property
    def failure_reason(self) -> str:
        return self.error or self.message or "Unknown error occurred"


# Events


@dataclass(frozen=True)
class OptionSelected:
    option_id: str


@dataclass(frozen=True)
class FieldUpdated:
    name: str
    value: Any


@dataclass(frozen=True)
class TextSubmitted:
    text: str


@dataclass(frozen=True)
class GenerationSettled:
    result: GenerationResult
    epoch: int


@dataclass(frozen=True)
class FollowUpSettled:
    result: GenerationResult
    epoch: int


@dataclass(frozen=True)
class DownloadRequested:
    pass


@dataclass(frozen=True)
class DownloadFailed:
    image_url: str


@dataclass(frozen=True)
class ResetRequested:
    pass


Event = (
    OptionSelected
    | FieldUpdated
    | TextSubmitted
    | GenerationSettled
    | FollowUpSettled
    | DownloadRequested
    | DownloadFailed
    | ResetRequested
)


# Effects


@dataclass(frozen=True)
class GenerateEffect:
    """Submit the collected fields to the generation endpoint."""

    fields: FieldSet
    epoch: int


@dataclass(frozen=True)
class FollowUpEffect:
    """Ask the service to revise the current image."""

    instruction: str
    image_url: str
    epoch: int


@dataclass(frozen=True)
class DownloadEffect:
    image_url: str


Effect = GenerateEffect | FollowUpEffect | DownloadEffect
