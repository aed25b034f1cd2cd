# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Shared test fixtures for the context-budget test suite."""

import math
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
from context_budget.models import ContentBlock, Message, MessageRole, TextBlock


class CharCounter:
    """Deterministic token counter: ceil(chars / 4) over text blocks."""

    def __init__(self, model_id: str = "test-model") -> None:
        self.model_id = model_id
        self.calls = 0

    async def count_tokens(self, content: List[ContentBlock]) -> int:
        self.calls += 1
        chars = sum(len(b.text) for b in content if isinstance(b, TextBlock))
        return math.ceil(chars / 4)


# ---------------------------------------------------------------------------
# Message factories
# ---------------------------------------------------------------------------


@pytest.fixture
def conversation():
    """Factory fixture for alternating user/assistant conversations."""

    def _factory(count: int = 10, content: str = "message {i}") -> List[Message]:
        return [
            Message(
                role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT,
                content=content.format(i=i),
                ts=1_000 + i * 10,
            )
            for i in range(count)
        ]

    return _factory


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def char_counter() -> CharCounter:
    """Fixture providing a deterministic token counter."""
    return CharCounter()


@pytest.fixture
def mock_llm():
    """Factory fixture for mock async chat models."""

    def _factory(
        text: str = "Summary of conversation.",
        input_tokens: int = 100,
        output_tokens: int = 20,
    ) -> AsyncMock:
        llm = AsyncMock()
        result = MagicMock()
        result.content = text
        result.usage_metadata = {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
        }
        llm.ainvoke.return_value = result
        return llm

    return _factory
