"""Tests for shared utility functions."""

import contextvars
import logging

from concierge.logging_context import (
    NO_CONVERSATION,
    ConversationIdFilter,
    get_conversation_logger,
    set_conversation_id,
)
from concierge.utils import (
    detect_language,
    fill_placeholders,
    find_unresolved_placeholders,
    first_name,
    normalize_text,
    unescape_newlines,
)


class TestNormalizeText:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize_text("Seven-Star  Hospital!") == "seven star hospital"

    def test_collapses_whitespace(self):
        assert normalize_text("  city   care \n general ") == "city care general"

    def test_empty(self):
        assert normalize_text("  ...  ") == ""


class TestPlaceholders:
    def test_fills_known_names(self):
        text = fill_placeholders("Hi {{customerName}}, id {{ intimationId }}",
                                 {"customerName": "Vineet", "intimationId": "INT-1"})
        assert text == "Hi Vineet, id INT-1"

    def test_names_with_spaces(self):
        assert fill_placeholders("{{claim Number}}", {"claim Number": "INT-1"}) == "INT-1"

    def test_unknown_and_none_left_in_place(self):
        text = fill_placeholders("{{a}} {{b}}", {"b": None})
        assert text == "{{a}} {{b}}"
        assert find_unresolved_placeholders(text) == ["a", "b"]

    def test_non_string_values(self):
        assert fill_placeholders("Rs. {{cost}}", {"cost": 20000}) == "Rs. 20000"

    def test_single_braces_untouched(self):
        assert find_unresolved_placeholders("{not a placeholder}") == []


class TestSmallHelpers:
    def test_unescape_newlines(self):
        assert unescape_newlines("a\\nb\\n\\nc") == "a\nb\n\nc"

    def test_first_name(self):
        assert first_name("Vineet Sharma") == "Vineet"
        assert first_name("   ") == ""


class TestDetectLanguage:
    def test_english(self):
        assert detect_language("my wife needs a knee surgery") == "en"

    def test_devanagari(self):
        assert detect_language("मुझे अस्पताल चाहिए") == "hi"

    def test_roman_hindi(self):
        assert detect_language("haan theek hai kal") == "hi"

    def test_empty_defaults_to_english(self):
        assert detect_language("") == "en"


class TestConversationLogging:
    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("concierge.test", logging.INFO, __file__, 1, "msg", None, None)

    def test_filter_stamps_current_conversation(self):
        context = contextvars.copy_context()
        record = self._record()

        def stamp():
            set_conversation_id("conv-9")
            return ConversationIdFilter().filter(record)

        assert context.run(stamp) is True
        assert record.conversation_id == "conv-9"

    def test_unset_conversation_uses_placeholder(self):
        record = self._record()
        contextvars.Context().run(ConversationIdFilter().filter, record)
        assert record.conversation_id == NO_CONVERSATION

    def test_existing_value_kept(self):
        record = self._record()
        record.conversation_id = "explicit"
        ConversationIdFilter().filter(record)
        assert record.conversation_id == "explicit"

    def test_logger_gets_one_filter(self):
        first = get_conversation_logger("concierge.test.filters")
        second = get_conversation_logger("concierge.test.filters")
        assert first is second
        assert sum(isinstance(f, ConversationIdFilter) for f in first.filters) == 1
