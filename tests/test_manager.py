# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for manage_context and will_manage_context."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from context_budget.models import SummarizeResponse
from context_budget.services.context.cache import TokenCountingCache
from context_budget.services.context.manager import (
    ContextManagementOptions,
    WillManageContextOptions,
    manage_context,
    will_manage_context,
)
from context_budget.services.context.summarizer import LLMConversationSummarizer
from context_budget.services.context.trigger import OverrideMode, ProfileCondenseOverride

LONG = "x" * 400  # 100 tokens with the character counter


def _options(messages, counter, **overrides) -> ContextManagementOptions:
    values = dict(
        messages=messages,
        total_tokens=900,
        context_window=1_000,
        max_tokens=100,
        system_prompt="sys",
        task_id="task",
        token_counter=counter,
        auto_condense_context=True,
        auto_condense_context_percent=100,
    )
    values.update(overrides)
    return ContextManagementOptions(**values)


def _failing_summarizer(error: str = "summarizer unavailable", cost: float = 0.0) -> AsyncMock:
    summarizer = AsyncMock()

    async def _respond(messages, *args, **kwargs):
        return SummarizeResponse(messages=messages, cost=cost, error=error)

    summarizer.side_effect = _respond
    return summarizer


# ---------------------------------------------------------------------------
# will_manage_context
# ---------------------------------------------------------------------------


class TestWillManageContext:
    """Tests for will_manage_context."""

    def test_over_allowed(self):
        """Verify 86000 tokens in a 100000 window with 4096 output triggers."""
        options = WillManageContextOptions(
            total_tokens=85_000,
            last_message_tokens=1_000,
            context_window=100_000,
            max_tokens=4_096,
            auto_condense_context_percent=100,
        )
        assert will_manage_context(options)

    def test_under_threshold(self):
        options = WillManageContextOptions(
            total_tokens=79_000,
            last_message_tokens=1_000,
            context_window=100_000,
            max_tokens=4_096,
            auto_condense_context_percent=100,
        )
        assert not will_manage_context(options)

    def test_auto_condense_off_uses_allowed_only(self):
        """Verify a low percent threshold is ignored when condensing is off."""
        options = WillManageContextOptions(
            total_tokens=59_000,
            last_message_tokens=1_000,
            context_window=100_000,
            max_tokens=4_096,
            auto_condense_context=False,
            auto_condense_context_percent=50,
        )
        assert not will_manage_context(options)

        options.auto_condense_context = True
        assert will_manage_context(options)

    @pytest.mark.asyncio
    async def test_without_summarizer_ignores_percent_threshold(self, conversation, char_counter):
        """Verify a threshold hit under the allowed budget predicts no action without a summarizer."""
        options = WillManageContextOptions(
            total_tokens=5_000,
            last_message_tokens=100,
            context_window=10_000,
            max_tokens=100,
            auto_condense_context_percent=50,
            has_summarizer=False,
        )
        assert not will_manage_context(options)

        messages = conversation(10, content=LONG)
        result = await manage_context(
            _options(
                messages,
                char_counter,
                total_tokens=5_000,
                context_window=10_000,
                auto_condense_context_percent=50,
            )
        )
        assert result.messages == messages
        assert result.truncation_id is None

        options.has_summarizer = True
        assert will_manage_context(options)

    def test_profile_token_override(self):
        options = WillManageContextOptions(
            total_tokens=4_000,
            last_message_tokens=1_000,
            context_window=100_000,
            max_tokens=4_096,
            profile_condense_overrides={
                "fast": ProfileCondenseOverride(enabled=True, mode=OverrideMode.TOKENS, tokens=5_000)
            },
            current_profile_id="fast",
        )
        assert will_manage_context(options)


# ---------------------------------------------------------------------------
# manage_context
# ---------------------------------------------------------------------------


class TestManageContext:
    """Tests for manage_context."""

    @pytest.mark.asyncio
    async def test_no_action_under_budget(self, conversation, char_counter):
        """Verify small contexts come back unchanged without calling the summarizer."""
        messages = conversation(10)
        summarizer = _failing_summarizer()

        result = await manage_context(
            _options(messages, char_counter, total_tokens=100, context_window=100_000, summarizer=summarizer)
        )

        assert result.messages == messages
        assert result.error is None
        assert result.truncation_id is None
        assert result.prev_context_tokens == 100 + 3
        summarizer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_condenses(self, conversation, mock_llm, char_counter):
        """Verify a successful condensation is returned and reported."""
        messages = conversation(10, content=LONG)
        telemetry = MagicMock()
        summarizer = LLMConversationSummarizer(mock_llm(), token_counter=char_counter)

        result = await manage_context(
            _options(messages, char_counter, summarizer=summarizer, telemetry=telemetry)
        )

        assert result.error is None
        assert result.prev_context_tokens == 1_000
        assert len(result.messages) == 5
        assert result.messages[1].is_summary
        assert result.new_context_tokens == 307
        assert result.truncation_id is None
        telemetry.capture_context_condensed.assert_called_once_with("task", True, False)
        telemetry.capture_sliding_window_truncation.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_condensation_falls_back_to_truncation(self, conversation, char_counter):
        """Verify a reported failure is kept as error and truncation still runs."""
        messages = conversation(10, content=LONG)
        telemetry = MagicMock()

        result = await manage_context(
            _options(
                messages,
                char_counter,
                summarizer=_failing_summarizer("no summary", cost=0.25),
                telemetry=telemetry,
            )
        )

        assert result.error == "no summary"
        assert result.cost == 0.25
        assert result.messages_removed == 4
        assert result.truncation_id
        assert len(result.messages) == 11
        assert result.new_context_tokens_after_truncation == 1 + 600
        telemetry.capture_sliding_window_truncation.assert_called_once_with("task")
        telemetry.capture_context_condensed.assert_not_called()

    @pytest.mark.asyncio
    async def test_raising_summarizer_falls_back_to_truncation(self, conversation, char_counter):
        messages = conversation(10, content=LONG)
        summarizer = AsyncMock(side_effect=RuntimeError("network down"))

        result = await manage_context(_options(messages, char_counter, summarizer=summarizer))

        assert result.error.startswith("Condensation failed:")
        assert "network down" in result.error
        assert result.messages_removed == 4

    @pytest.mark.asyncio
    async def test_threshold_hit_but_within_budget(self, conversation, char_counter):
        """Verify a failed condensation below the allowed budget leaves messages alone."""
        messages = conversation(10, content=LONG)
        summarizer = _failing_summarizer("too short")

        result = await manage_context(
            _options(
                messages,
                char_counter,
                total_tokens=5_000,
                context_window=10_000,
                auto_condense_context_percent=50,
                summarizer=summarizer,
            )
        )

        summarizer.assert_awaited_once()
        assert result.messages == messages
        assert result.error == "too short"
        assert result.truncation_id is None

    @pytest.mark.asyncio
    async def test_auto_condense_off_truncates(self, conversation, char_counter):
        messages = conversation(10, content=LONG)
        summarizer = _failing_summarizer()

        result = await manage_context(
            _options(messages, char_counter, auto_condense_context=False, summarizer=summarizer)
        )

        summarizer.assert_not_awaited()
        assert result.messages_removed == 4
        assert result.error is None

    @pytest.mark.asyncio
    async def test_without_summarizer_truncates(self, conversation, char_counter):
        result = await manage_context(_options(conversation(10, content=LONG), char_counter))
        assert result.messages_removed == 4

    @pytest.mark.asyncio
    async def test_telemetry_failure_is_ignored(self, conversation, char_counter):
        """Verify a broken telemetry sink does not fail the pass."""
        telemetry = MagicMock()
        telemetry.capture_sliding_window_truncation.side_effect = RuntimeError("sink down")

        result = await manage_context(
            _options(conversation(10, content=LONG), char_counter, telemetry=telemetry)
        )

        assert result.messages_removed == 4
        assert result.error is None

    @pytest.mark.asyncio
    async def test_empty_messages(self, char_counter):
        with pytest.raises(ValueError):
            await manage_context(_options([], char_counter))

    @pytest.mark.asyncio
    async def test_uses_token_cache(self, conversation, char_counter):
        """Verify the newest message is tokenized once across passes."""
        messages = conversation(10, content=LONG)
        cache = TokenCountingCache()
        options = _options(messages, char_counter, total_tokens=100, context_window=100_000, token_cache=cache)

        await manage_context(options)
        await manage_context(options)

        assert char_counter.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prev_tokens", [10_000, 40_000, 74_000, 76_000, 86_000, 95_000])
    async def test_agrees_with_will_manage(self, conversation, char_counter, prev_tokens):
        """Verify the predictor matches whether manage_context acts."""
        messages = conversation(10, content=LONG)
        summarizer = _failing_summarizer()
        predicted = will_manage_context(
            WillManageContextOptions(
                total_tokens=prev_tokens - 100,
                last_message_tokens=100,
                context_window=100_000,
                max_tokens=4_096,
                auto_condense_context_percent=75,
            )
        )

        result = await manage_context(
            _options(
                messages,
                char_counter,
                total_tokens=prev_tokens - 100,
                context_window=100_000,
                max_tokens=4_096,
                auto_condense_context_percent=75,
                summarizer=summarizer,
            )
        )

        assert predicted == (summarizer.await_count == 1)
        if result.truncation_id is not None:
            assert predicted
