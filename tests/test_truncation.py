# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for sliding-window truncation."""

import pytest
from context_budget.models import MessageRole
from context_budget.services.context.truncation import (
    TRUNCATION_MARKER_TEMPLATE,
    messages_to_hide,
    truncate_conversation,
    visible_indices,
)


class TestMessagesToHide:
    """Tests for messages_to_hide."""

    def test_rounds_down_to_even(self):
        """Verify the count is always even."""
        assert messages_to_hide(10, 0.5) == 4
        assert messages_to_hide(8, 0.5) == 2
        assert messages_to_hide(4, 0.5) == 0

    def test_single_message(self):
        """Verify a lone first message is never hidden."""
        assert messages_to_hide(1, 1.0) == 0
        assert messages_to_hide(0, 1.0) == 0

    def test_full_fraction(self):
        assert messages_to_hide(10, 1.0) == 8


class TestTruncateConversation:
    """Tests for truncate_conversation."""

    def test_hides_oldest_half(self, conversation):
        """Verify ten messages at 0.5 hide messages 1 to 4 and insert a marker."""
        messages = conversation(10)
        result = truncate_conversation(messages, 0.5, truncation_id="t1")

        assert result.messages_removed == 4
        assert result.truncation_id == "t1"
        assert len(result.messages) == 11

        for i in range(1, 5):
            assert result.messages[i].truncation_parent == "t1"
        assert result.messages[0].truncation_parent is None

        marker = result.messages[5]
        assert marker.is_truncation_marker
        assert marker.truncation_id == "t1"
        assert marker.role == MessageRole.USER
        assert marker.ts == 1_049
        assert marker.content == TRUNCATION_MARKER_TEMPLATE.format(count=4)

        assert [m.text() for m in result.messages[6:]] == [f"message {i}" for i in range(5, 10)]

    def test_input_not_mutated(self, conversation):
        """Verify the caller's messages are untouched."""
        messages = conversation(10)
        truncate_conversation(messages, 0.5)
        assert all(m.truncation_parent is None for m in messages)
        assert len(messages) == 10

    def test_no_messages_deleted(self, conversation):
        """Verify every original message is still present after truncation."""
        messages = conversation(10)
        result = truncate_conversation(messages, 0.5)
        originals = [m for m in result.messages if not m.is_truncation_marker]
        assert [m.text() for m in originals] == [m.text() for m in messages]

    def test_generates_id(self, conversation):
        """Verify an id is generated when none is supplied."""
        result = truncate_conversation(conversation(10), 0.5)
        assert result.truncation_id
        assert result.messages[1].truncation_parent == result.truncation_id

    def test_nothing_to_hide(self, conversation):
        """Verify short conversations are returned unchanged."""
        messages = conversation(4)
        result = truncate_conversation(messages, 0.5)
        assert result.messages_removed == 0
        assert result.messages == messages

    def test_repeated_truncation_skips_hidden(self, conversation):
        """Verify a second pass only considers still-visible messages."""
        first = truncate_conversation(conversation(10), 0.5, truncation_id="t1")
        second = truncate_conversation(first.messages, 0.5, truncation_id="t2")

        assert second.messages_removed == 2
        assert len(second.messages) == 12
        assert [m.truncation_parent for m in second.messages[1:5]] == ["t1"] * 4
        assert second.messages[5].truncation_id == "t1"
        assert second.messages[6].truncation_parent == "t2"
        assert second.messages[7].truncation_parent == "t2"
        assert second.messages[8].is_truncation_marker
        assert second.messages[8].ts == 1_069

        visible = visible_indices(second.messages)
        assert [second.messages[i].text() for i in visible] == [
            "message 0",
            "message 7",
            "message 8",
            "message 9",
        ]

    def test_marker_appended_when_all_hidden(self, conversation):
        """Verify the marker goes at the end when no visible message follows."""
        result = truncate_conversation(conversation(3), 1.0)
        assert result.messages_removed == 2
        assert result.messages[-1].is_truncation_marker
        assert len(result.messages) == 4

    def test_invalid_fraction(self, conversation):
        """Verify fractions outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            truncate_conversation(conversation(4), 1.5)
        with pytest.raises(ValueError):
            truncate_conversation(conversation(4), -0.1)
