from __future__ import annotations

import unittest

from thumbnail_bot.config import ConversationConfig
from thumbnail_bot.core import machine
from thumbnail_bot.core.events import (
    DownloadEffect,
    DownloadRequested,
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
from thumbnail_bot.core.fields import ImageItem
from thumbnail_bot.core.machine import Step
from thumbnail_bot.core.timeline import MessageKind, Sender

DESCRIPTION = "Epic boss battle, neon colors, shocked face"


def _bot_messages_since(state: machine.ConversationState, start: int) -> list:
    return [m for m in state.timeline.snapshot()[start:] if m.sender is Sender.BOT]


def _at_style_step(limits: ConversationConfig | None = None) -> machine.ConversationState:
    state = machine.new_conversation(limits)
    machine.apply(state, OptionSelected(machine.SKIP_IMAGES))
    return state


def _at_description_step() -> machine.ConversationState:
    state = _at_style_step()
    machine.apply(state, FieldUpdated("theme_color", "#FF6B6B"))
    machine.apply(state, FieldUpdated("category", "gaming"))
    machine.apply(state, OptionSelected(machine.INPUTS_DONE))
    machine.apply(state, OptionSelected(machine.CONFIRM))
    return state


def _at_result_step(url: str = "https://x/y.png") -> machine.ConversationState:
    state = _at_description_step()
    [effect] = machine.apply(state, TextSubmitted(DESCRIPTION))
    machine.apply(state, GenerationSettled(GenerationResult(success=True, url=url), effect.epoch))
    return state


def _signature(state: machine.ConversationState) -> list[tuple]:
    return [(m.sender, m.content, m.kind, m.payload) for m in state.timeline.snapshot()]


class TestInitialState(unittest.TestCase):
    def test_greeting_sequence(self) -> None:
        state = machine.new_conversation()
        messages = state.timeline.snapshot()

        self.assertIs(state.step, Step.ASK_IMAGES)
        self.assertEqual(len(messages), 2)
        self.assertEqual(messages[0].kind, MessageKind.PLAIN_TEXT)
        self.assertEqual(messages[1].kind, MessageKind.OPTION_CHOICES)
        self.assertEqual(
            [o.id for o in messages[1].options],
            [machine.ADD_IMAGES, machine.SKIP_IMAGES],
        )
        self.assertFalse(machine.input_enabled(state))

    def test_unsupported_event_type(self) -> None:
        with self.assertRaises(TypeError):
            machine.apply(machine.new_conversation(), object())  # type: ignore[arg-type]


class TestImageStep(unittest.TestCase):
    def setUp(self) -> None:
        self.state = machine.new_conversation(ConversationConfig(max_file_bytes=100, max_icons=2))
        machine.apply(self.state, OptionSelected(machine.ADD_IMAGES))

    def test_add_images_opens_widget(self) -> None:
        self.assertIs(self.state.step, Step.COLLECT_IMAGES)
        widget = self.state.timeline.last()
        self.assertEqual(widget.kind, MessageKind.IMAGE_COLLECTION_WIDGET)
        self.assertEqual([s["name"] for s in widget.payload["slots"]], ["background", "major", "icon"])
        self.assertEqual(widget.payload["slots"][2]["max_count"], 2)

    def test_icon_needs_description_before_advancing(self) -> None:
        machine.apply(self.state, FieldUpdated("icon", ImageItem(content=b"icon")))
        start = len(self.state.timeline)
        machine.apply(self.state, OptionSelected(machine.IMAGES_DONE))

        self.assertIs(self.state.step, Step.COLLECT_IMAGES)
        [violation] = _bot_messages_since(self.state, start)
        self.assertIn("Icon 1 needs a description", violation.content)

        machine.apply(self.state, FieldUpdated("icon_description", (1, "fire emoji")))
        machine.apply(self.state, OptionSelected(machine.IMAGES_DONE))
        self.assertIs(self.state.step, Step.COLLECT_INPUTS)
        self.assertEqual(self.state.fields.icons[0].description, "fire emoji")

    def test_oversized_file_is_not_stored(self) -> None:
        machine.apply(self.state, FieldUpdated("background", ImageItem(content=b"x" * 101, filename="bg.jpg")))
        self.assertIsNone(self.state.fields.background)
        self.assertIn("file too large", self.state.timeline.last().content)

    def test_non_image_is_not_stored(self) -> None:
        item = ImageItem(content=b"data", filename="a.txt", content_type="text/plain")
        machine.apply(self.state, FieldUpdated("major", item))
        self.assertIsNone(self.state.fields.major)
        self.assertIn("not a valid image", self.state.timeline.last().content)

    def test_icon_limit(self) -> None:
        for name in ("one", "two", "three"):
            machine.apply(self.state, FieldUpdated("icon", ImageItem(content=b"i", description=name)))
        self.assertEqual([i.description for i in self.state.fields.icons], ["one", "two"])
        self.assertIn("up to 2 icons", self.state.timeline.last().content)

    def test_remove_icon(self) -> None:
        machine.apply(self.state, FieldUpdated("icon", ImageItem(content=b"i", description="one")))
        machine.apply(self.state, FieldUpdated("icon", ImageItem(content=b"i", description="two")))
        machine.apply(self.state, FieldUpdated("remove_icon", 1))
        self.assertEqual([i.description for i in self.state.fields.icons], ["two"])

        machine.apply(self.state, FieldUpdated("remove_icon", 5))
        self.assertIn("There is no icon 5", self.state.timeline.last().content)

    def test_slot_description_requires_image(self) -> None:
        machine.apply(self.state, FieldUpdated("background_description", "city at night"))
        self.assertIn("Add a background image first", self.state.timeline.last().content)

        machine.apply(self.state, FieldUpdated("background", ImageItem(content=b"bg")))
        machine.apply(self.state, FieldUpdated("background_description", "city at night"))
        self.assertEqual(self.state.fields.background.description, "city at night")

    def test_all_violations_in_one_message(self) -> None:
        machine.apply(self.state, FieldUpdated("icon", ImageItem(content=b"a")))
        machine.apply(self.state, FieldUpdated("icon", ImageItem(content=b"b")))
        start = len(self.state.timeline)
        machine.apply(self.state, OptionSelected(machine.IMAGES_DONE))

        [violation] = _bot_messages_since(self.state, start)
        self.assertIn("Icon 1 needs a description", violation.content)
        self.assertIn("Icon 2 needs a description", violation.content)

    def test_style_fields_are_gated(self) -> None:
        machine.apply(self.state, FieldUpdated("theme_color", "#FF6B6B"))
        self.assertEqual(self.state.fields.theme_color, "")
        self.assertIn("can't be changed right now", self.state.timeline.last().content)


class TestStyleStep(unittest.TestCase):
    def test_skip_images_opens_style_widget(self) -> None:
        state = _at_style_step()
        self.assertIs(state.step, Step.COLLECT_INPUTS)
        widget = state.timeline.last()
        self.assertEqual(widget.kind, MessageKind.STYLE_INPUTS_WIDGET)
        self.assertIn("#FF6B6B", widget.payload["colors"])
        self.assertEqual(len(widget.payload["gradients"]), 10)
        self.assertIn("gaming", [c["id"] for c in widget.payload["categories"]])

    def test_advancing_requires_color_and_category(self) -> None:
        for updates in ([], [("theme_color", "#FF6B6B")], [("category", "gaming")]):
            with self.subTest(updates=updates):
                state = _at_style_step()
                for name, value in updates:
                    machine.apply(state, FieldUpdated(name, value))
                start = len(state.timeline)

                effects = machine.apply(state, OptionSelected(machine.INPUTS_DONE))

                self.assertEqual(effects, [])
                self.assertIs(state.step, Step.COLLECT_INPUTS)
                self.assertEqual(len(_bot_messages_since(state, start)), 1)

    def test_unknown_category_is_rejected(self) -> None:
        state = _at_style_step()
        machine.apply(state, FieldUpdated("category", "cooking"))
        self.assertEqual(state.fields.category, "")

    def test_confirmation_and_edit(self) -> None:
        state = _at_style_step()
        machine.apply(state, FieldUpdated("theme_color", "#FF6B6B"))
        machine.apply(state, FieldUpdated("category", "gaming"))
        machine.apply(state, OptionSelected(machine.INPUTS_DONE))

        self.assertIs(state.step, Step.CONFIRMATION)
        summary = state.timeline.last()
        self.assertIn("#FF6B6B", summary.content)
        self.assertIn("Gaming", summary.content)
        self.assertEqual([o.id for o in summary.options], [machine.CONFIRM, machine.EDIT])

        machine.apply(state, OptionSelected(machine.EDIT))
        self.assertIs(state.step, Step.COLLECT_INPUTS)
        self.assertEqual(state.timeline.last().payload["selected"]["category"], "gaming")

    def test_repeated_option_is_rejected(self) -> None:
        state = _at_style_step()
        machine.apply(state, OptionSelected(machine.SKIP_IMAGES))
        self.assertIs(state.step, Step.COLLECT_INPUTS)
        self.assertIn("no longer available", state.timeline.last().content)


class TestDescriptionStep(unittest.TestCase):
    def test_input_enabled_only_here(self) -> None:
        state = _at_description_step()
        self.assertIs(state.step, Step.FINAL_DESCRIPTION)
        self.assertTrue(machine.input_enabled(state))
        self.assertTrue(machine.can_submit(state, DESCRIPTION))
        self.assertFalse(machine.can_submit(state, "short"))

    def test_out_of_bounds_descriptions_are_rejected_locally(self) -> None:
        for text in ("", "too short", "   abc   ", "x" * 501):
            with self.subTest(length=len(text)):
                state = _at_description_step()
                start = len(state.timeline)

                effects = machine.apply(state, TextSubmitted(text))

                self.assertEqual(effects, [])
                self.assertIs(state.step, Step.FINAL_DESCRIPTION)
                self.assertEqual(len(state.timeline.snapshot()[start:]), 1)
                self.assertEqual(state.fields.final_description, "")

    def test_text_outside_accepting_steps(self) -> None:
        state = _at_style_step()
        effects = machine.apply(state, TextSubmitted(DESCRIPTION))
        self.assertEqual(effects, [])
        self.assertIs(state.step, Step.COLLECT_INPUTS)

    def test_valid_submission_starts_generation(self) -> None:
        state = _at_description_step()
        start = len(state.timeline)

        [effect] = machine.apply(state, TextSubmitted(f"  {DESCRIPTION}  "))

        self.assertIsInstance(effect, GenerateEffect)
        self.assertIs(state.step, Step.GENERATING)
        self.assertEqual(effect.fields.final_description, DESCRIPTION)
        self.assertEqual(effect.fields.theme_color, "#FF6B6B")
        self.assertEqual(effect.fields.category, "gaming")
        self.assertIsNone(effect.fields.background)
        self.assertEqual(effect.fields.icons, [])

        new = state.timeline.snapshot()[start:]
        self.assertEqual([m.sender for m in new], [Sender.USER, Sender.BOT])
        self.assertIn("Generating", new[1].content)
        self.assertFalse(machine.input_enabled(state))

    def test_submission_while_generating_is_rejected(self) -> None:
        state = _at_description_step()
        machine.apply(state, TextSubmitted(DESCRIPTION))
        effects = machine.apply(state, TextSubmitted(DESCRIPTION + " again"))
        self.assertEqual(effects, [])
        self.assertIs(state.step, Step.GENERATING)
        self.assertIn("Still generating", state.timeline.last().content)


class TestGenerationSettled(unittest.TestCase):
    def test_success_shows_exactly_one_result(self) -> None:
        state = _at_description_step()
        [effect] = machine.apply(state, TextSubmitted(DESCRIPTION))
        start = len(state.timeline)

        machine.apply(
            state,
            GenerationSettled(GenerationResult(success=True, url="https://x/y.png"), effect.epoch),
        )

        self.assertIs(state.step, Step.RESULT)
        new = state.timeline.snapshot()[start:]
        self.assertEqual(len(new), 1)
        self.assertEqual(new[0].kind, MessageKind.RESULT_DISPLAY)
        self.assertEqual(new[0].payload["url"], "https://x/y.png")
        self.assertEqual(state.generated_url, "https://x/y.png")

    def test_failure_returns_to_description_and_keeps_text(self) -> None:
        state = _at_description_step()
        [effect] = machine.apply(state, TextSubmitted(DESCRIPTION))
        start = len(state.timeline)

        machine.apply(
            state,
            GenerationSettled(
                GenerationResult(success=False, error="HTTP error! status: 500"),
                effect.epoch,
            ),
        )

        self.assertIs(state.step, Step.FINAL_DESCRIPTION)
        [error] = state.timeline.snapshot()[start:]
        self.assertIn("HTTP error! status: 500", error.content)
        self.assertEqual(state.fields.final_description, DESCRIPTION)
        self.assertTrue(machine.input_enabled(state))
        self.assertIsNone(state.generated_url)

    def test_stale_result_after_reset_is_dropped(self) -> None:
        state = _at_description_step()
        [effect] = machine.apply(state, TextSubmitted(DESCRIPTION))
        machine.apply(state, ResetRequested())
        greeting = _signature(state)

        machine.apply(
            state,
            GenerationSettled(GenerationResult(success=True, url="https://x/old.png"), effect.epoch),
        )

        self.assertIs(state.step, Step.ASK_IMAGES)
        self.assertIsNone(state.generated_url)
        self.assertEqual(_signature(state), greeting)


class TestFollowUp(unittest.TestCase):
    def test_text_requires_open_panel(self) -> None:
        state = _at_result_step()
        effects = machine.apply(state, TextSubmitted("make it brighter"))
        self.assertEqual(effects, [])
        self.assertFalse(machine.input_enabled(state))

    def test_follow_up_round_trip(self) -> None:
        state = _at_result_step()
        machine.apply(state, OptionSelected(machine.FOLLOW_UP))
        self.assertTrue(machine.input_enabled(state))

        self.assertEqual(machine.apply(state, TextSubmitted("ok")), [])

        [effect] = machine.apply(state, TextSubmitted("make it brighter"))
        self.assertIsInstance(effect, FollowUpEffect)
        self.assertEqual(effect.image_url, "https://x/y.png")
        self.assertEqual(effect.instruction, "make it brighter")
        self.assertIn("Applying", state.timeline.last().content)
        self.assertFalse(machine.input_enabled(state))

        self.assertEqual(machine.apply(state, TextSubmitted("and bigger text")), [])

        start = len(state.timeline)
        machine.apply(
            state,
            FollowUpSettled(GenerationResult(success=True, url="https://x/z.png"), effect.epoch),
        )
        [result] = state.timeline.snapshot()[start:]
        self.assertEqual(result.kind, MessageKind.RESULT_DISPLAY)
        self.assertEqual(result.payload["url"], "https://x/z.png")
        self.assertEqual(state.generated_url, "https://x/z.png")
        self.assertIs(state.step, Step.RESULT)

    def test_follow_up_failure_stays_in_result(self) -> None:
        state = _at_result_step()
        machine.apply(state, OptionSelected(machine.FOLLOW_UP))
        [effect] = machine.apply(state, TextSubmitted("make it brighter"))
        start = len(state.timeline)

        machine.apply(state, FollowUpSettled(GenerationResult(success=False, error="boom"), effect.epoch))

        [error] = state.timeline.snapshot()[start:]
        self.assertIn("boom", error.content)
        self.assertIs(state.step, Step.RESULT)
        self.assertEqual(state.generated_url, "https://x/y.png")
        self.assertTrue(machine.input_enabled(state))

    def test_follow_up_without_generated_image(self) -> None:
        state = machine.new_conversation()
        effects = machine.apply(state, OptionSelected(machine.FOLLOW_UP))
        self.assertEqual(effects, [])
        self.assertIn("no generated thumbnail", state.timeline.last().content)
        self.assertFalse(state.follow_up_open)


class TestPresentationFlags(unittest.TestCase):
    def test_placeholder_per_step(self) -> None:
        state = _at_style_step()
        self.assertEqual(machine.placeholder(state), "Choose an option above")

        state = _at_description_step()
        self.assertEqual(machine.placeholder(state), "Describe your thumbnail's main message, tone, and purpose...")

        [effect] = machine.apply(state, TextSubmitted(DESCRIPTION))
        self.assertEqual(machine.placeholder(state), "Generating your thumbnail...")

        machine.apply(state, GenerationSettled(GenerationResult(success=True, url="https://x/y.png"), effect.epoch))
        self.assertEqual(machine.placeholder(state), "Choose an action above")

        machine.apply(state, OptionSelected(machine.FOLLOW_UP))
        self.assertEqual(machine.placeholder(state), "Describe what you'd like to change...")

        machine.apply(state, TextSubmitted("make it brighter"))
        self.assertEqual(machine.placeholder(state), "Applying your changes...")

    def test_offers_option_follows_step(self) -> None:
        state = _at_style_step()
        self.assertTrue(machine.offers_option(state, machine.INPUTS_DONE))
        self.assertFalse(machine.offers_option(state, machine.SKIP_IMAGES))

        # Rejected advance keeps the option on offer
        machine.apply(state, OptionSelected(machine.INPUTS_DONE))
        self.assertTrue(machine.offers_option(state, machine.INPUTS_DONE))

        machine.apply(state, FieldUpdated("theme_color", "#FF6B6B"))
        machine.apply(state, FieldUpdated("category", "gaming"))
        machine.apply(state, OptionSelected(machine.INPUTS_DONE))
        self.assertFalse(machine.offers_option(state, machine.INPUTS_DONE))
        self.assertTrue(machine.offers_option(state, machine.CONFIRM))


class TestTerminalActions(unittest.TestCase):
    def test_download_effect(self) -> None:
        state = _at_result_step()
        self.assertEqual(
            machine.apply(state, DownloadRequested()),
            [DownloadEffect(image_url="https://x/y.png")],
        )
        self.assertEqual(
            machine.apply(state, OptionSelected(machine.DOWNLOAD)),
            [DownloadEffect(image_url="https://x/y.png")],
        )

    def test_download_without_result(self) -> None:
        state = machine.new_conversation()
        self.assertEqual(machine.apply(state, DownloadRequested()), [])

    def test_start_over_reproduces_fresh_session(self) -> None:
        fresh = _signature(machine.new_conversation())
        state = _at_result_step()

        machine.apply(state, OptionSelected(machine.START_OVER))

        self.assertIs(state.step, Step.ASK_IMAGES)
        self.assertEqual(_signature(state), fresh)
        self.assertEqual(state.fields.theme_color, "")
        self.assertEqual(state.fields.final_description, "")
        self.assertIsNone(state.generated_url)
        self.assertEqual(state.epoch, 1)


if __name__ == "__main__":
    unittest.main()
