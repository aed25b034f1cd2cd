# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for token estimation and cached counting."""

import pytest
from context_budget.models import ImageBlock, Message, MessageRole, TextBlock, ToolUseBlock
from context_budget.services.context.cache import TokenCountingCache
from context_budget.services.context.tokens import (
    IMAGE_FALLBACK_TOKENS,
    TiktokenCounter,
    count_content_tokens,
    count_message_tokens,
    estimate_block_tokens,
    estimate_tokens,
)


class TestEstimateTokens:
    """Tests for estimate_tokens."""

    def test_empty_is_zero(self):
        """Verify that empty text costs nothing."""
        assert estimate_tokens("") == 0

    def test_non_empty_positive(self):
        """Verify that non-empty text costs at least one token."""
        assert estimate_tokens("hello") >= 1

    def test_shorter_text_not_larger(self):
        """Verify that a prefix never costs more than the full text."""
        text = "The quick brown fox jumps over the lazy dog. " * 20
        assert estimate_tokens(text[:100]) <= estimate_tokens(text)


class TestEstimateBlockTokens:
    """Tests for per-block estimation."""

    def test_image_without_data(self):
        """Verify that an empty image uses the fallback estimate."""
        assert estimate_block_tokens(ImageBlock()) == IMAGE_FALLBACK_TOKENS

    def test_image_sqrt_of_payload(self):
        """Verify that image cost grows with the square root of the payload."""
        assert estimate_block_tokens(ImageBlock(data="x" * 10_000)) == 100

    def test_tool_use_counts_arguments(self):
        """Verify that tool arguments contribute tokens."""
        small = ToolUseBlock(id="1", name="read", input={})
        large = ToolUseBlock(id="2", name="read", input={"path": "/a/b/c" * 50})
        assert estimate_block_tokens(large) > estimate_block_tokens(small)


class TestCountContentTokens:
    """Tests for count_content_tokens with the shared cache."""

    @pytest.mark.asyncio
    async def test_uses_cache(self, char_counter):
        """Verify that repeated content is tokenized once."""
        cache = TokenCountingCache()
        first = await count_content_tokens("a" * 40, char_counter, cache)
        second = await count_content_tokens("a" * 40, char_counter, cache)
        assert first == second == 10
        assert char_counter.calls == 1

    @pytest.mark.asyncio
    async def test_without_cache(self, char_counter):
        """Verify that counting works without a cache."""
        assert await count_content_tokens("abcd" * 3, char_counter) == 3
        assert await count_content_tokens("abcd" * 3, char_counter) == 3
        assert char_counter.calls == 2

    @pytest.mark.asyncio
    async def test_empty_text_skips_counter(self, char_counter):
        """Verify that empty content is 0 without calling the counter."""
        assert await count_content_tokens("", char_counter) == 0
        assert await count_content_tokens([], char_counter) == 0
        assert char_counter.calls == 0

    @pytest.mark.asyncio
    async def test_block_content(self, char_counter):
        """Verify that block lists are counted through the counter."""
        msg = Message(
            role=MessageRole.USER,
            content=[TextBlock(text="abcd"), TextBlock(text="efgh")],
        )
        assert await count_message_tokens(msg, char_counter) == 2

    @pytest.mark.asyncio
    async def test_counter_errors_propagate(self):
        """Verify that a failing counter is not masked as zero."""

        class Broken:
            model_id = "broken"

            async def count_tokens(self, content):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await count_content_tokens("text", Broken(), TokenCountingCache())

    @pytest.mark.asyncio
    async def test_tiktoken_counter(self):
        """Verify the default counter returns a positive estimate."""
        counter = TiktokenCounter()
        assert await counter.count_tokens([TextBlock(text="hello world")]) >= 1
