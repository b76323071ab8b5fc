"""Conversation step state machine.

The machine decides what the bot asks next, which input is currently
accepted and when the conversation may advance. Transitions are looked up in
a dispatch table keyed by event type. A transition receives the conversation
state explicitly, applies its changes (appending to the timeline, updating
fields and the current step) and returns a list of effects. Network calls are
never made here: they are returned as effect descriptions and executed by the
session controller, whose settled results come back as new events.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from thumbnail_bot.config import ConversationConfig
from thumbnail_bot.core import validator
from thumbnail_bot.core.catalog import CATEGORIES, CATEGORY_IDS, GRADIENT_COLORS, PRESET_COLORS, category_label
from thumbnail_bot.core.events import (
    DownloadEffect,
    DownloadFailed,
    DownloadRequested,
    Effect,
    Event,
    FieldUpdated,
    FollowUpEffect,
    FollowUpSettled,
    GenerateEffect,
    GenerationSettled,
    OptionSelected,
    ResetRequested,
    TextSubmitted,
)
from thumbnail_bot.core.fields import FieldSet, ImageItem
from thumbnail_bot.core.timeline import MessageKind, MessageTimeline

logger = logging.getLogger(__name__)


class Step(str, Enum):
    """Conversation phase gating which input and actions are valid."""

    ASK_IMAGES = "ask-images"
    COLLECT_IMAGES = "collect-images"
    COLLECT_INPUTS = "collect-inputs"
    CONFIRMATION = "confirmation"
    FINAL_DESCRIPTION = "final-description"
    GENERATING = "generating"
    RESULT = "result"


# Option ids
ADD_IMAGES = "add-images"
SKIP_IMAGES = "skip-images"
IMAGES_DONE = "images-done"
INPUTS_DONE = "inputs-done"
CONFIRM = "confirm"
EDIT = "edit"
FOLLOW_UP = "follow-up"
DOWNLOAD = "download"
START_OVER = "start-over"

RESULT_OPTIONS = [
    {"id": FOLLOW_UP, "label": "✏️ Request changes"},
    {"id": DOWNLOAD, "label": "⬇️ Download"},
    {"id": START_OVER, "label": "🔄 Start over"},
]

GREETING = (
    "👋 Let's create your YouTube thumbnail! "
    "I'll ask a few quick questions and then generate it for you."
)
ASK_IMAGES_PROMPT = "First, would you like to add images? All images are optional."


@dataclass
class ConversationState:
    """Session aggregate: field set, timeline and current step.

    ``epoch`` grows on every start over so results of requests issued before
    the reset can be recognised and dropped.
    """

    limits: ConversationConfig = field(default_factory=ConversationConfig)
    fields: FieldSet = field(default_factory=FieldSet)
    timeline: MessageTimeline = field(default_factory=MessageTimeline)
    step: Step = Step.ASK_IMAGES
    generated_url: str | None = None
    follow_up_open: bool = False
    follow_up_pending: bool = False
    epoch: int = 0


Transition = Callable[[ConversationState, Any], list[Effect]]


def new_conversation(limits: ConversationConfig | None = None) -> ConversationState:
    """Create a session with the initial greeting already on the timeline."""
    state = ConversationState(limits=limits or ConversationConfig())
    _greet(state)
    return state


def apply(state: ConversationState, event: Event) -> list[Effect]:
    """Apply an event to the conversation and return effects to run."""
    transition = TRANSITIONS.get(type(event))
    if transition is None:
        raise TypeError(f"Unsupported event: {event!r}")
    logger.debug(f"[STEP: {state.step.value}] Applying {type(event).__name__}")
    effects = transition(state, event)
    logger.debug(f"[STEP: {state.step.value}] {len(effects)} effect(s) scheduled")
    return effects


# Presentation-facing flags


def input_enabled(state: ConversationState) -> bool:
    """Free text is accepted for the description or an open follow-up panel."""
    if state.step is Step.FINAL_DESCRIPTION:
        return True
    return state.step is Step.RESULT and state.follow_up_open and not state.follow_up_pending


def placeholder(state: ConversationState) -> str:
    if state.step is Step.FINAL_DESCRIPTION:
        return "Describe your thumbnail's main message, tone, and purpose..."
    if state.step is Step.GENERATING:
        return "Generating your thumbnail..."
    if state.step is Step.RESULT:
        if state.follow_up_pending:
            return "Applying your changes..."
        if state.follow_up_open:
            return "Describe what you'd like to change..."
        return "Choose an action above"
    return "Choose an option above"


def text_violations(state: ConversationState, text: str) -> list[str]:
    """Violations for a text submission in the current step."""
    if state.step is Step.FINAL_DESCRIPTION:
        return validator.validate_description(
            text,
            state.limits.description_min_length,
            state.limits.description_max_length,
        )
    return validator.validate_follow_up(text, state.limits.follow_up_min_length)


def can_submit(state: ConversationState, text: str) -> bool:
    return input_enabled(state) and not text_violations(state, text)


def offers_option(state: ConversationState, option_id: str) -> bool:
    """Whether the current step still accepts ``option_id``."""
    return option_id in OPTIONS.get(state.step, {})


# Prompts


def _greet(state: ConversationState) -> None:
    state.timeline.bot(GREETING)
    state.timeline.bot(
        ASK_IMAGES_PROMPT,
        MessageKind.OPTION_CHOICES,
        {
            "options": [
                {"id": ADD_IMAGES, "label": "📷 Add images"},
                {"id": SKIP_IMAGES, "label": "⏭ Skip images"},
            ]
        },
    )


def _ask_images(state: ConversationState) -> None:
    state.step = Step.COLLECT_IMAGES
    state.timeline.bot(
        "Add a background image, a major image and up to "
        f"{state.limits.max_icons} icons. Icons need a short description. "
        "Press Done when you're finished.",
        MessageKind.IMAGE_COLLECTION_WIDGET,
        {
            "slots": [
                {"name": "background", "label": "Background Image", "max_count": 1, "require_description": False},
                {"name": "major", "label": "Major Image", "max_count": 1, "require_description": False},
                {
                    "name": "icon",
                    "label": "Image Icons",
                    "max_count": state.limits.max_icons,
                    "require_description": True,
                },
            ],
            "options": [{"id": IMAGES_DONE, "label": "✅ Done"}],
        },
    )


def _ask_style_inputs(state: ConversationState) -> None:
    state.step = Step.COLLECT_INPUTS
    state.timeline.bot(
        "Great! Now choose your theme color and category. "
        "Both are required to create the perfect thumbnail style.",
        MessageKind.STYLE_INPUTS_WIDGET,
        {
            "colors": list(PRESET_COLORS),
            "gradients": list(GRADIENT_COLORS),
            "categories": [category._asdict() for category in CATEGORIES],
            "selected": {"theme_color": state.fields.theme_color, "category": state.fields.category},
            "options": [{"id": INPUTS_DONE, "label": "➡️ Next"}],
        },
    )


def _ask_confirmation(state: ConversationState) -> None:
    state.step = Step.CONFIRMATION
    images = state.fields.attached_images()
    image_summary = ", ".join(name for name, _ in images) if images else "none"
    state.timeline.bot(
        "Here's what we have so far:\n"
        f"• Images: {image_summary}\n"
        f"• Theme color: {state.fields.theme_color}\n"
        f"• Category: {category_label(state.fields.category)}\n\n"
        "Shall we continue?",
        MessageKind.OPTION_CHOICES,
        {
            "options": [
                {"id": CONFIRM, "label": "👍 Looks good"},
                {"id": EDIT, "label": "✏️ Change style"},
            ]
        },
    )


def _ask_final_description(state: ConversationState) -> None:
    state.step = Step.FINAL_DESCRIPTION
    state.timeline.bot(
        "Perfect! Now describe your thumbnail's main message, tone, and purpose "
        f"({state.limits.description_min_length}–{state.limits.description_max_length} characters)."
    )


def _show_result(state: ConversationState, url: str, content: str, service_message: str | None) -> None:
    state.generated_url = url
    state.follow_up_open = False
    state.timeline.bot(
        content,
        MessageKind.RESULT_DISPLAY,
        {"url": url, "message": service_message, "options": RESULT_OPTIONS},
    )


def _reject(state: ConversationState, violations: list[str]) -> list[Effect]:
    """Surface all violations in one bot message; the step is unchanged."""
    if len(violations) == 1:
        state.timeline.bot(f"⚠️ {violations[0]}")
    else:
        state.timeline.bot("⚠️ Please fix the following:\n" + "\n".join(f"• {v}" for v in violations))
    logger.info(f"[STEP: {state.step.value}] Rejected: {violations}")
    return []


# Options


def _option_label(state: ConversationState, option_id: str) -> str:
    for message in reversed(state.timeline.snapshot()):
        for option in message.options:
            if option.id == option_id:
                return option.label
    return option_id


def _on_add_images(state: ConversationState) -> list[Effect]:
    _ask_images(state)
    return []


def _on_skip_images(state: ConversationState) -> list[Effect]:
    _ask_style_inputs(state)
    return []


def _on_images_done(state: ConversationState) -> list[Effect]:
    violations = validator.validate_images(
        state.fields,
        state.limits.max_file_bytes,
        state.limits.image_content_type_prefix,
    )
    if violations:
        return _reject(state, violations)
    _ask_style_inputs(state)
    return []


def _on_inputs_done(state: ConversationState) -> list[Effect]:
    violations = validator.validate_style(state.fields)
    if violations:
        return _reject(state, violations)
    _ask_confirmation(state)
    return []


def _on_confirm(state: ConversationState) -> list[Effect]:
    _ask_final_description(state)
    return []


def _on_edit(state: ConversationState) -> list[Effect]:
    _ask_style_inputs(state)
    return []


def _on_follow_up(state: ConversationState) -> list[Effect]:
    if state.follow_up_pending:
        return _reject(state, ["Still applying your previous changes, please wait"])
    state.follow_up_open = True
    state.timeline.bot(
        "What would you like to change? "
        f"Describe the edit (at least {state.limits.follow_up_min_length} characters)."
    )
    return []


def _on_download(state: ConversationState) -> list[Effect]:
    return _download(state, DownloadRequested())


OPTIONS: dict[Step, dict[str, Callable[[ConversationState], list[Effect]]]] = {
    Step.ASK_IMAGES: {ADD_IMAGES: _on_add_images, SKIP_IMAGES: _on_skip_images},
    Step.COLLECT_IMAGES: {IMAGES_DONE: _on_images_done},
    Step.COLLECT_INPUTS: {INPUTS_DONE: _on_inputs_done},
    Step.CONFIRMATION: {CONFIRM: _on_confirm, EDIT: _on_edit},
    Step.RESULT: {FOLLOW_UP: _on_follow_up, DOWNLOAD: _on_download},
}


def _select_option(state: ConversationState, event: OptionSelected) -> list[Effect]:
    if event.option_id == START_OVER:
        return _reset(state, ResetRequested())

    handler = OPTIONS.get(state.step, {}).get(event.option_id)
    if handler is None:
        if event.option_id in (FOLLOW_UP, DOWNLOAD) and state.generated_url is None:
            return _reject(state, ["There is no generated thumbnail yet"])
        return _reject(state, ["That option is no longer available"])

    state.timeline.user(_option_label(state, event.option_id))
    logger.info(f"[STEP: {state.step.value}] Option selected: {event.option_id}")
    return handler(state)


# Field updates


def _check_image(state: ConversationState, value: Any) -> list[str]:
    if not isinstance(value, ImageItem) or not value.is_present:
        return ["No image file attached"]
    return validator.validate_image(
        value,
        state.limits.max_file_bytes,
        state.limits.image_content_type_prefix,
    )


def _set_background(state: ConversationState, value: Any) -> list[Effect]:
    violations = _check_image(state, value)
    if violations:
        return _reject(state, violations)
    state.fields.background = value
    state.timeline.bot("✅ Background image added.")
    return []


def _set_major(state: ConversationState, value: Any) -> list[Effect]:
    violations = _check_image(state, value)
    if violations:
        return _reject(state, violations)
    state.fields.major = value
    state.timeline.bot("✅ Major image added.")
    return []


def _add_icon(state: ConversationState, value: Any) -> list[Effect]:
    if len(state.fields.icons) >= state.limits.max_icons:
        return _reject(state, [f"You can add up to {state.limits.max_icons} icons"])
    violations = _check_image(state, value)
    if violations:
        return _reject(state, violations)
    state.fields.icons.append(value)
    number = len(state.fields.icons)
    if value.description.strip():
        state.timeline.bot(f"✅ Icon {number} added.")
    else:
        state.timeline.bot(f"✅ Icon {number} added. It still needs a description.")
    return []


def _icon_index(state: ConversationState, number: Any) -> int | None:
    if isinstance(number, int) and 1 <= number <= len(state.fields.icons):
        return number - 1
    return None


def _remove_icon(state: ConversationState, value: Any) -> list[Effect]:
    index = _icon_index(state, value)
    if index is None:
        return _reject(state, [f"There is no icon {value}"])
    del state.fields.icons[index]
    state.timeline.bot(f"🗑 Icon {value} removed.")
    return []


def _describe_slot(state: ConversationState, slot: str, value: Any) -> list[Effect]:
    item: ImageItem | None = getattr(state.fields, slot)
    if item is None:
        return _reject(state, [f"Add a {slot} image first"])
    setattr(state.fields, slot, item.model_copy(update={"description": str(value)}))
    state.timeline.bot(f"📝 {slot.capitalize()} description saved.")
    return []


def _set_background_description(state: ConversationState, value: Any) -> list[Effect]:
    return _describe_slot(state, "background", value)


def _set_major_description(state: ConversationState, value: Any) -> list[Effect]:
    return _describe_slot(state, "major", value)


def _set_icon_description(state: ConversationState, value: Any) -> list[Effect]:
    if not isinstance(value, tuple) or len(value) != 2:
        return _reject(state, ["Icon description must name the icon"])
    number, description = value
    index = _icon_index(state, number)
    if index is None:
        return _reject(state, [f"There is no icon {number}"])
    icon = state.fields.icons[index]
    state.fields.icons[index] = icon.model_copy(update={"description": str(description)})
    state.timeline.bot(f"📝 Icon {number} description saved.")
    return []


def _set_theme_color(state: ConversationState, value: Any) -> list[Effect]:
    color = str(value or "").strip()
    if not color:
        return _reject(state, ["Please select a theme color"])
    state.fields.theme_color = color
    state.timeline.bot(f"🎨 Theme color: {color}")
    return []


def _set_category(state: ConversationState, value: Any) -> list[Effect]:
    category = str(value or "").strip()
    if category not in CATEGORY_IDS:
        return _reject(state, [f"Unknown category: {category or '(empty)'}"])
    state.fields.category = category
    state.timeline.bot(f"🏷 Category: {category_label(category)}")
    return []


FIELDS: dict[str, tuple[Step, Callable[[ConversationState, Any], list[Effect]]]] = {
    "background": (Step.COLLECT_IMAGES, _set_background),
    "major": (Step.COLLECT_IMAGES, _set_major),
    "icon": (Step.COLLECT_IMAGES, _add_icon),
    "remove_icon": (Step.COLLECT_IMAGES, _remove_icon),
    "background_description": (Step.COLLECT_IMAGES, _set_background_description),
    "major_description": (Step.COLLECT_IMAGES, _set_major_description),
    "icon_description": (Step.COLLECT_IMAGES, _set_icon_description),
    "theme_color": (Step.COLLECT_INPUTS, _set_theme_color),
    "category": (Step.COLLECT_INPUTS, _set_category),
}


def _update_field(state: ConversationState, event: FieldUpdated) -> list[Effect]:
    entry = FIELDS.get(event.name)
    if entry is None:
        return _reject(state, [f"Unknown field: {event.name}"])
    step, handler = entry
    if state.step is not step:
        return _reject(state, ["That can't be changed right now"])
    return handler(state, event.value)


# Text submissions


def _submit_text(state: ConversationState, event: TextSubmitted) -> list[Effect]:
    text = event.text.strip()

    if state.step is Step.GENERATING:
        return _reject(state, ["Still generating your thumbnail, please wait"])

    if state.step is Step.RESULT:
        if state.follow_up_pending:
            return _reject(state, ["Still applying your previous changes, please wait"])
        if not state.follow_up_open:
            return _reject(state, ["Press “Request changes” to describe an edit"])
        return _submit_follow_up(state, text)

    if state.step is not Step.FINAL_DESCRIPTION:
        return _reject(state, ["Please use the options above to continue"])

    violations = text_violations(state, text)
    if violations:
        return _reject(state, violations)

    state.fields.final_description = text
    state.timeline.user(text)
    state.step = Step.GENERATING
    state.timeline.bot("🎨 Generating your thumbnail... This can take a minute.")
    logger.info(f"[STEP: {state.step.value}] Generation requested (epoch {state.epoch})")
    return [GenerateEffect(fields=state.fields.model_copy(deep=True), epoch=state.epoch)]


def _submit_follow_up(state: ConversationState, text: str) -> list[Effect]:
    if state.generated_url is None:
        return _reject(state, ["There is no generated thumbnail to edit yet"])
    violations = text_violations(state, text)
    if violations:
        return _reject(state, violations)

    state.timeline.user(text)
    state.follow_up_pending = True
    state.timeline.bot("🛠 Applying your changes...")
    logger.info(f"[STEP: {state.step.value}] Follow-up requested (epoch {state.epoch})")
    return [FollowUpEffect(instruction=text, image_url=state.generated_url, epoch=state.epoch)]


# Settled network calls


def _generation_settled(state: ConversationState, event: GenerationSettled) -> list[Effect]:
    if event.epoch != state.epoch or state.step is not Step.GENERATING:
        logger.warning(
            f"[STEP: {state.step.value}] Dropping generation result from epoch {event.epoch} "
            f"(current epoch {state.epoch})"
        )
        return []

    result = event.result
    if result.success and result.url:
        state.step = Step.RESULT
        _show_result(state, result.url, "✨ Here's your thumbnail!", result.message)
        logger.info(f"[STEP: {state.step.value}] Generation succeeded: {result.url}")
        return []

    # The submitted description is kept so it can be edited and resent
    state.step = Step.FINAL_DESCRIPTION
    state.timeline.bot(
        f"❌ Generation failed: {result.failure_reason}\n"
        "Send your description again to retry, or write a new one."
    )
    logger.warning(f"[STEP: {state.step.value}] Generation failed: {result.failure_reason}")
    return []


def _follow_up_settled(state: ConversationState, event: FollowUpSettled) -> list[Effect]:
    if event.epoch != state.epoch or not state.follow_up_pending:
        logger.warning(
            f"[STEP: {state.step.value}] Dropping follow-up result from epoch {event.epoch} "
            f"(current epoch {state.epoch})"
        )
        return []

    state.follow_up_pending = False
    result = event.result
    if result.success and result.url:
        _show_result(state, result.url, "✨ Here's the updated thumbnail!", result.message)
        logger.info(f"[STEP: {state.step.value}] Follow-up succeeded: {result.url}")
        return []

    state.timeline.bot(f"❌ Couldn't apply your changes: {result.failure_reason}\nPlease try again.")
    logger.warning(f"[STEP: {state.step.value}] Follow-up failed: {result.failure_reason}")
    return []


# Terminal actions


def _download(state: ConversationState, event: DownloadRequested) -> list[Effect]:
    if state.generated_url is None:
        return _reject(state, ["There is no generated thumbnail yet"])
    return [DownloadEffect(image_url=state.generated_url)]


def _download_failed(state: ConversationState, event: DownloadFailed) -> list[Effect]:
    return _reject(state, ["Couldn't download the thumbnail, please try again"])


def _reset(state: ConversationState, event: ResetRequested) -> list[Effect]:
    logger.info(f"[STEP: {state.step.value}] Starting over (epoch {state.epoch} -> {state.epoch + 1})")
    state.fields = FieldSet()
    state.timeline = MessageTimeline()
    state.step = Step.ASK_IMAGES
    state.generated_url = None
    state.follow_up_open = False
    state.follow_up_pending = False
    state.epoch += 1
    _greet(state)
    return []


TRANSITIONS: dict[type, Transition] = {
    OptionSelected: _select_option,
    FieldUpdated: _update_field,
    TextSubmitted: _submit_text,
    GenerationSettled: _generation_settled,
    FollowUpSettled: _follow_up_settled,
    DownloadRequested: _download,
    DownloadFailed: _download_failed,
    ResetRequested: _reset,
}
