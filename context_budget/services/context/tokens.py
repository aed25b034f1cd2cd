# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Token estimation utilities.

Uses tiktoken when its encoding can be loaded, falls back to a chars/4
heuristic otherwise. Counting goes through ``count_content_tokens`` so that
identical content is tokenized once per model via ``TokenCountingCache``.
"""

from __future__ import annotations

import json
import logging
import math
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

import tiktoken

from context_budget.config import settings
from context_budget.models import (
    ContentBlock,
    ImageBlock,
    Message,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from context_budget.services.context.cache import TokenCountingCache

CHARS_PER_TOKEN_FALLBACK = 4
IMAGE_FALLBACK_TOKENS = 300

logger = logging.getLogger(__name__)

try:
    _encoding: Optional["tiktoken.Encoding"] = tiktoken.encoding_for_model(settings.TOKENIZER_MODEL)
except Exception:
    logger.info("tiktoken encoding unavailable, using chars/%d heuristic", CHARS_PER_TOKEN_FALLBACK)
    _encoding = None


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a string.

    Args:
        text (str): Text to tokenize.

    Returns:
        int: Token count from tiktoken, or ``ceil(len(text) / 4)`` when the
            encoding is unavailable. Empty text is 0 tokens.
    """
    if not text:
        return 0
    if _encoding is not None:
        return len(_encoding.encode(text, disallowed_special=()))
    return math.ceil(len(text) / CHARS_PER_TOKEN_FALLBACK)


def estimate_block_tokens(block: ContentBlock) -> int:
    """Estimate tokens for one content block.

    Tool calls are measured on their JSON-serialised arguments; images by the
    square root of their payload length.

    Args:
        block (ContentBlock): Block to measure.

    Returns:
        int: Estimated token count.
    """
    if isinstance(block, TextBlock):
        return estimate_tokens(block.text)
    if isinstance(block, ToolUseBlock):
        try:
            args = json.dumps(block.input, ensure_ascii=False)
        except (TypeError, ValueError):
            args = str(block.input)
        return estimate_tokens(block.name) + estimate_tokens(args)
    if isinstance(block, ToolResultBlock):
        return estimate_tokens(block.content)
    if isinstance(block, ImageBlock):
        if not block.data:
            return IMAGE_FALLBACK_TOKENS
        return math.ceil(math.sqrt(len(block.data)))
    return 0


def estimate_blocks_tokens(blocks: Sequence[ContentBlock]) -> int:
    """Sum of ``estimate_block_tokens`` over *blocks*."""
    return sum(estimate_block_tokens(b) for b in blocks)


@runtime_checkable
class TokenCounter(Protocol):
    """Collaborator that counts tokens for a sequence of content blocks.

    Implementations must be idempotent for caching to be valid.
    """

    model_id: str

    async def count_tokens(self, content: List[ContentBlock]) -> int:
        ...


class TiktokenCounter:
    """Default ``TokenCounter`` backed by ``estimate_blocks_tokens``."""

    def __init__(self, model_id: str = "gpt-4o") -> None:
        self.model_id = model_id

    async def count_tokens(self, content: List[ContentBlock]) -> int:
        return estimate_blocks_tokens(content)


def _cache_text(blocks: Sequence[ContentBlock]) -> str:
    """Stable serialisation of blocks for cache keys."""
    if len(blocks) == 1 and isinstance(blocks[0], TextBlock):
        return blocks[0].text
    return json.dumps([b.model_dump() for b in blocks], ensure_ascii=False, sort_keys=True)


async def count_content_tokens(
    content: Union[str, Sequence[ContentBlock]],
    counter: TokenCounter,
    cache: Optional[TokenCountingCache] = None,
) -> int:
    """Count tokens for text or blocks, consulting the shared cache.

    Counting errors propagate to the caller; they are never replaced by 0.

    Args:
        content (Union[str, Sequence[ContentBlock]]): Text or blocks to count.
        counter (TokenCounter): Counting collaborator.
        cache (Optional[TokenCountingCache]): Shared cache, if any.

    Returns:
        int: Estimated token count (0 for empty content).
    """
    blocks: List[ContentBlock] = (
        [TextBlock(text=content)] if isinstance(content, str) else list(content)
    )
    if not blocks or (len(blocks) == 1 and isinstance(blocks[0], TextBlock) and not blocks[0].text):
        return 0

    async def _compute() -> int:
        return await counter.count_tokens(blocks)

    if cache is None:
        return await _compute()
    return await cache.get_or_compute(_cache_text(blocks), counter.model_id, _compute)


async def count_message_tokens(
    msg: Message,
    counter: TokenCounter,
    cache: Optional[TokenCountingCache] = None,
) -> int:
    """Token count of a single message's content."""
    return await count_content_tokens(msg.content, counter, cache)
