# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Conversation condensation collaborators.

Both collaborators follow the same contract: keep the first message and the
last few messages verbatim, summarize everything in between (since the last
summary), and return a shorter message list with the summary inserted as an
assistant message tagged ``is_summary``. Failures are reported through
``SummarizeResponse.error`` together with any cost already incurred.

  LLMConversationSummarizer   one summarization call per condensation
  TreeConversationSummarizer  builds a summary tree and picks the most
                              detailed summaries that fit a token budget
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Protocol, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from context_budget.config import settings
from context_budget.models import (
    Message,
    MessageRole,
    SummarizeResponse,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from context_budget.services.context.cache import TokenCountingCache
from context_budget.services.context.hierarchy import HierarchicalSummarizer, messages_to_text
from context_budget.services.context.settings import ModelPricing
from context_budget.services.context.tokens import (
    TiktokenCounter,
    TokenCounter,
    count_content_tokens,
    count_message_tokens,
)
from context_budget.services.prompts.base import CONDENSE_PROMPT, CONDENSE_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

ERR_NOT_ENOUGH_MESSAGES = "Not enough messages to condense the context."
ERR_CONDENSED_RECENTLY = "Context was condensed recently; skipping."
ERR_EMPTY_SUMMARY = "Condensation failed: the model returned an empty summary."
ERR_CONTEXT_GREW = "Condensation failed: the condensed context is not smaller than before."
ERR_FAILED = "Condensation failed: {error}"


class ConversationSummarizer(Protocol):
    """Summarization collaborator consumed by ``manage_context``."""

    async def __call__(
        self,
        messages: List[Message],
        system_prompt: str,
        task_id: str,
        prev_context_tokens: int,
        is_automatic_trigger: bool = False,
        custom_condensing_prompt: Optional[str] = None,
        condensing_llm: Optional[BaseChatModel] = None,
        use_native_tools: Optional[bool] = None,
    ) -> SummarizeResponse:
        ...


def get_messages_since_last_summary(messages: List[Message]) -> List[Message]:
    """Messages from the most recent summary onwards (all if none)."""
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].is_summary:
            return messages[i:]
    return list(messages)


def _tool_use_ids(msg: Message) -> List[str]:
    if isinstance(msg.content, str):
        return []
    return [b.id for b in msg.content if isinstance(b, ToolUseBlock)]


def _has_tool_result(msg: Message) -> bool:
    return not isinstance(msg.content, str) and any(
        isinstance(b, ToolResultBlock) for b in msg.content
    )


def find_keep_start(messages: List[Message], keep: int, use_native_tools: bool = False) -> int:
    """Index where the verbatim tail begins.

    With native tools the tail is widened backwards so it never starts with
    a tool_result whose tool_use would be summarized away.

    Args:
        messages (List[Message]): Full conversation.
        keep (int): Messages to keep verbatim.
        use_native_tools (bool): Whether tool blocks are sent natively.

    Returns:
        int: Start index of the kept tail (at least 1).
    """
    start = max(1, len(messages) - keep)
    if not use_native_tools:
        return start
    while 1 < start < len(messages) and _has_tool_result(messages[start]) and not _tool_use_ids(messages[start]):
        start -= 1
    return start


class _BaseConversationSummarizer(ABC):
    """Shared selection, assembly and validation for condensation."""

    def __init__(
        self,
        llm: BaseChatModel,
        token_counter: Optional[TokenCounter] = None,
        token_cache: Optional[TokenCountingCache] = None,
        pricing: Optional[ModelPricing] = None,
        keep_messages: Optional[int] = None,
    ) -> None:
        """Initialize the collaborator.

        Args:
            llm (BaseChatModel): Default summarization model.
            token_counter (Optional[TokenCounter]): Counter used to size the
                condensed context. Defaults to ``TiktokenCounter``.
            token_cache (Optional[TokenCountingCache]): Shared token cache.
            pricing (Optional[ModelPricing]): Prices for cost reporting.
            keep_messages (Optional[int]): Trailing messages kept verbatim.
                Defaults to ``settings.CONDENSE_KEEP_MESSAGES``.
        """
        self.llm = llm
        self.token_counter = token_counter or TiktokenCounter()
        self.token_cache = token_cache
        self.pricing = pricing or ModelPricing()
        self.keep_messages = keep_messages if keep_messages is not None else settings.CONDENSE_KEEP_MESSAGES

    async def __call__(
        self,
        messages: List[Message],
        system_prompt: str,
        task_id: str,
        prev_context_tokens: int,
        is_automatic_trigger: bool = False,
        custom_condensing_prompt: Optional[str] = None,
        condensing_llm: Optional[BaseChatModel] = None,
        use_native_tools: Optional[bool] = None,
    ) -> SummarizeResponse:
        keep_start = find_keep_start(messages, self.keep_messages, bool(use_native_tools))
        to_summarize = get_messages_since_last_summary(messages[:keep_start])
        if len(to_summarize) <= 1:
            error = (
                ERR_NOT_ENOUGH_MESSAGES
                if len(messages) <= self.keep_messages + 1
                else ERR_CONDENSED_RECENTLY
            )
            return SummarizeResponse(messages=messages, error=error)

        kept = messages[keep_start:]
        if any(m.is_summary for m in kept):
            return SummarizeResponse(messages=messages, error=ERR_CONDENSED_RECENTLY)

        try:
            summary, cost = await self._summarize(
                to_summarize,
                task_id,
                custom_condensing_prompt,
                condensing_llm or self.llm,
            )
        except Exception as e:
            logger.warning("Condensation call failed for %s: %s", task_id, e)
            return SummarizeResponse(messages=messages, error=ERR_FAILED.format(error=e))

        summary = summary.strip()
        if not summary:
            return SummarizeResponse(messages=messages, cost=cost, error=ERR_EMPTY_SUMMARY)

        summary_message = Message(
            role=MessageRole.ASSISTANT,
            content=summary,
            ts=kept[0].ts - 1 if kept else messages[-1].ts,
            is_summary=True,
        )
        new_messages = [messages[0], summary_message, *kept]

        new_context_tokens = await count_content_tokens(
            system_prompt, self.token_counter, self.token_cache
        )
        for msg in new_messages[1:]:
            new_context_tokens += await count_message_tokens(msg, self.token_counter, self.token_cache)

        if new_context_tokens >= prev_context_tokens:
            logger.warning(
                "Condensed context for %s did not shrink (%d -> %d tokens)",
                task_id,
                prev_context_tokens,
                new_context_tokens,
            )
            return SummarizeResponse(messages=messages, cost=cost, error=ERR_CONTEXT_GREW)

        logger.info(
            "Condensed %d message(s) for %s: %d -> %d tokens",
            len(to_summarize),
            task_id,
            prev_context_tokens,
            new_context_tokens,
        )
        return SummarizeResponse(
            messages=new_messages,
            summary=summary,
            cost=cost,
            new_context_tokens=new_context_tokens,
        )

    @abstractmethod
    async def _summarize(
        self,
        messages: List[Message],
        task_id: str,
        custom_prompt: Optional[str],
        llm: BaseChatModel,
    ) -> Tuple[str, float]:
        """Summary text for *messages* and the cost of producing it."""


class LLMConversationSummarizer(_BaseConversationSummarizer):
    """Condenses with a single summarization call."""

    async def _summarize(
        self,
        messages: List[Message],
        task_id: str,
        custom_prompt: Optional[str],
        llm: BaseChatModel,
    ) -> Tuple[str, float]:
        system = custom_prompt.strip() if custom_prompt and custom_prompt.strip() else CONDENSE_SYSTEM_PROMPT
        response = await llm.ainvoke(
            [
                SystemMessage(content=system),
                HumanMessage(content=CONDENSE_PROMPT.format(conversation=render_transcript(messages))),
            ]
        )
        text = response.content if isinstance(response.content, str) else str(response.content)
        usage = getattr(response, "usage_metadata", None)
        cost = 0.0
        if isinstance(usage, dict):
            cost = self.pricing.cost(
                int(usage.get("input_tokens", 0) or 0),
                int(usage.get("output_tokens", 0) or 0),
            )
        return text, cost


class TreeConversationSummarizer(_BaseConversationSummarizer):
    """Condenses through a ``HierarchicalSummarizer`` tree."""

    def __init__(
        self,
        hierarchy: HierarchicalSummarizer,
        summary_token_budget: int = 2_000,
        **kwargs,
    ) -> None:
        """Initialize the collaborator.

        Args:
            hierarchy (HierarchicalSummarizer): Tree builder; its model is the
                default summarization model. A condensing model or prompt
                passed per call is used for every node of that build.
            summary_token_budget (int): Budget handed to
                ``get_summary_for_budget``.
            **kwargs: Forwarded to the base collaborator.
        """
        super().__init__(hierarchy.llm, **kwargs)
        self.hierarchy = hierarchy
        self.summary_token_budget = summary_token_budget

    async def _summarize(
        self,
        messages: List[Message],
        task_id: str,
        custom_prompt: Optional[str],
        llm: BaseChatModel,
    ) -> Tuple[str, float]:
        instructions = custom_prompt.strip() if custom_prompt and custom_prompt.strip() else None
        tree = await self.hierarchy.create_summary_tree(task_id, messages, llm, instructions)
        parts = self.hierarchy.get_summary_for_budget(task_id, self.summary_token_budget)
        cost = sum(
            self.pricing.cost(
                n.metadata.get("input_tokens", 0),
                n.metadata.get("output_tokens", 0),
            )
            for n in tree.nodes.values()
        )
        return "\n\n".join(parts), cost


def render_transcript(messages: List[Message]) -> str:
    """Text transcript including tool calls and results.

    Args:
        messages (List[Message]): Messages to render.

    Returns:
        str: Role-prefixed sections separated by blank lines.
    """
    parts: List[str] = []
    for msg in messages:
        if isinstance(msg.content, str):
            parts.append(messages_to_text([msg]))
            continue
        label = "Assistant" if msg.role == MessageRole.ASSISTANT else "User"
        for block in msg.content:
            if isinstance(block, TextBlock) and block.text:
                parts.append(f"[{label}]: {block.text}")
            elif isinstance(block, ToolUseBlock):
                args = ", ".join(f"{k}={v!r}" for k, v in block.input.items())
                parts.append(f"[{label} tool call]: {block.name}({args})")
            elif isinstance(block, ToolResultBlock) and block.content:
                parts.append(f"[Tool result]: {block.content}")
    return "\n\n".join(parts)
