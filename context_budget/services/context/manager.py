# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context management: one pass per model turn.

  1. Count the newest message (through the shared token cache).
  2. Resolve the condense trigger.
  3. Condense through the summarization collaborator when a threshold is hit.
  4. If condensation was skipped or failed and the context still overflows
     the allowed budget, hide the oldest half of the visible messages.

Nothing here retries: a condensation failure is reported once as a
non-fatal ``error`` and truncation is attempted in the same pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from langchain_core.language_models import BaseChatModel

from context_budget.config import settings
from context_budget.models import ContextManagementResult, Message
from context_budget.services.context.cache import TokenCountingCache
from context_budget.services.context.summarizer import ERR_FAILED, ConversationSummarizer
from context_budget.services.context.tokens import (
    TokenCounter,
    count_content_tokens,
    count_message_tokens,
)
from context_budget.services.context.trigger import (
    CondenseTrigger,
    ProfileCondenseOverride,
    exceeds_threshold,
    resolve_condense_trigger,
)
from context_budget.services.context.truncation import truncate_conversation
from context_budget.services.telemetry import TelemetrySink, emit_condensed, emit_truncation

logger = logging.getLogger(__name__)


@dataclass
class WillManageContextOptions:
    """Inputs of the ``will_manage_context`` predictor.

    Attributes:
        total_tokens (int): Context tokens excluding the newest message.
        last_message_tokens (int): Tokens of the newest message.
        context_window (int): Model context window.
        max_tokens (Optional[int]): Declared output limit.
        auto_condense_context (bool): Whether condensation may run.
        auto_condense_context_percent (float): Global threshold percent.
        profile_thresholds (Dict[str, float]): Per-profile percent thresholds.
        profile_condense_overrides (Dict[str, ProfileCondenseOverride]):
            Per-profile overrides.
        current_profile_id (str): Active profile.
        has_summarizer (bool): Whether a condensation collaborator is
            configured; without one only the allowed budget can trigger.
    """

    total_tokens: int
    last_message_tokens: int
    context_window: int
    max_tokens: Optional[int] = None
    auto_condense_context: bool = settings.AUTO_CONDENSE_CONTEXT
    auto_condense_context_percent: float = settings.AUTO_CONDENSE_CONTEXT_PERCENT
    profile_thresholds: Dict[str, float] = field(default_factory=dict)
    profile_condense_overrides: Dict[str, ProfileCondenseOverride] = field(default_factory=dict)
    current_profile_id: str = "default"
    has_summarizer: bool = True


@dataclass
class ContextManagementOptions:
    """Inputs of one ``manage_context`` pass.

    Attributes:
        messages (List[Message]): Conversation, newest (user) message last.
        total_tokens (int): Context tokens excluding the newest message.
        context_window (int): Model context window.
        system_prompt (str): System prompt sent with the conversation.
        task_id (str): Conversation identifier.
        token_counter (TokenCounter): Token counting collaborator.
        summarizer (Optional[ConversationSummarizer]): Condensation
            collaborator; without one only truncation can run.
        max_tokens (Optional[int]): Declared output limit.
        auto_condense_context (bool): Whether condensation may run.
        auto_condense_context_percent (float): Global threshold percent.
        profile_thresholds (Dict[str, float]): Per-profile percent thresholds.
        profile_condense_overrides (Dict[str, ProfileCondenseOverride]):
            Per-profile overrides.
        current_profile_id (str): Active profile.
        custom_condensing_prompt (Optional[str]): Replaces the default
            condensing instructions.
        condensing_llm (Optional[BaseChatModel]): Model override for
            condensation.
        use_native_tools (Optional[bool]): Whether tool blocks are native.
        token_cache (Optional[TokenCountingCache]): Shared token cache.
        telemetry (Optional[TelemetrySink]): Event sink.
        truncation_fraction (float): Share of visible messages to hide.
    """

    messages: List[Message]
    total_tokens: int
    context_window: int
    system_prompt: str
    task_id: str
    token_counter: TokenCounter
    summarizer: Optional[ConversationSummarizer] = None
    max_tokens: Optional[int] = None
    auto_condense_context: bool = settings.AUTO_CONDENSE_CONTEXT
    auto_condense_context_percent: float = settings.AUTO_CONDENSE_CONTEXT_PERCENT
    profile_thresholds: Dict[str, float] = field(default_factory=dict)
    profile_condense_overrides: Dict[str, ProfileCondenseOverride] = field(default_factory=dict)
    current_profile_id: str = "default"
    custom_condensing_prompt: Optional[str] = None
    condensing_llm: Optional[BaseChatModel] = None
    use_native_tools: Optional[bool] = None
    token_cache: Optional[TokenCountingCache] = None
    telemetry: Optional[TelemetrySink] = None
    truncation_fraction: float = settings.TRUNCATION_FRACTION


def _resolve(
    context_window: int,
    max_tokens: Optional[int],
    auto_condense_context_percent: float,
    profile_thresholds: Mapping[str, float],
    profile_condense_overrides: Mapping[str, ProfileCondenseOverride],
    current_profile_id: str,
) -> CondenseTrigger:
    return resolve_condense_trigger(
        context_window=context_window,
        max_tokens=max_tokens,
        auto_condense_context_percent=auto_condense_context_percent,
        profile_thresholds=profile_thresholds,
        profile_condense_overrides=profile_condense_overrides,
        current_profile_id=current_profile_id,
    )


def will_manage_context(options: WillManageContextOptions) -> bool:
    """Predict whether ``manage_context`` would condense or truncate.

    Uses the same trigger and threshold math as ``manage_context``.

    Args:
        options (WillManageContextOptions): Token accounting and thresholds.

    Returns:
        bool: ``True`` if condensation or truncation would run.
    """
    trigger = _resolve(
        options.context_window,
        options.max_tokens,
        options.auto_condense_context_percent,
        options.profile_thresholds,
        options.profile_condense_overrides,
        options.current_profile_id,
    )
    prev_context_tokens = options.total_tokens + options.last_message_tokens
    if not options.auto_condense_context or not options.has_summarizer:
        return prev_context_tokens > trigger.allowed_tokens
    return exceeds_threshold(prev_context_tokens, options.context_window, trigger)


async def manage_context(options: ContextManagementOptions) -> ContextManagementResult:
    """Condense or truncate the conversation when it nears the budget.

    Args:
        options (ContextManagementOptions): Conversation, accounting and
            collaborators.

    Returns:
        ContextManagementResult: Condensed, truncated or unchanged messages.
            ``error`` carries a non-fatal condensation failure.

    Raises:
        ValueError: If ``options.messages`` is empty.
    """
    messages = options.messages
    if not messages:
        raise ValueError("No messages provided")

    counter, cache = options.token_counter, options.token_cache
    last_message_tokens = await count_message_tokens(messages[-1], counter, cache)
    prev_context_tokens = options.total_tokens + last_message_tokens

    trigger = _resolve(
        options.context_window,
        options.max_tokens,
        options.auto_condense_context_percent,
        options.profile_thresholds,
        options.profile_condense_overrides,
        options.current_profile_id,
    )

    error: Optional[str] = None
    cost = 0.0

    if (
        options.auto_condense_context
        and options.summarizer is not None
        and exceeds_threshold(prev_context_tokens, options.context_window, trigger)
    ):
        try:
            result = await options.summarizer(
                messages,
                options.system_prompt,
                options.task_id,
                prev_context_tokens,
                True,
                options.custom_condensing_prompt,
                options.condensing_llm,
                options.use_native_tools,
            )
        except Exception as e:
            logger.warning("Condensation raised for %s: %s", options.task_id, e)
            error = ERR_FAILED.format(error=e)
        else:
            if result.error:
                logger.warning("Condensation failed for %s: %s", options.task_id, result.error)
                error, cost = result.error, result.cost
            else:
                emit_condensed(
                    options.telemetry,
                    options.task_id,
                    True,
                    bool(options.custom_condensing_prompt),
                )
                return ContextManagementResult(
                    messages=result.messages,
                    summary=result.summary,
                    cost=result.cost,
                    new_context_tokens=result.new_context_tokens,
                    prev_context_tokens=prev_context_tokens,
                )

    if prev_context_tokens > trigger.allowed_tokens:
        truncation = truncate_conversation(messages, options.truncation_fraction)
        emit_truncation(options.telemetry, options.task_id)

        new_tokens = await count_content_tokens(options.system_prompt, counter, cache)
        for msg in truncation.messages:
            if msg.is_visible:
                new_tokens += await count_message_tokens(msg, counter, cache)

        logger.info(
            "Truncated context for %s: %d message(s) hidden, %d -> %d tokens",
            options.task_id,
            truncation.messages_removed,
            prev_context_tokens,
            new_tokens,
        )
        return ContextManagementResult(
            messages=truncation.messages,
            summary="",
            cost=cost,
            error=error,
            prev_context_tokens=prev_context_tokens,
            truncation_id=truncation.truncation_id,
            messages_removed=truncation.messages_removed,
            new_context_tokens_after_truncation=new_tokens,
        )

    return ContextManagementResult(
        messages=messages,
        summary="",
        cost=cost,
        error=error,
        prev_context_tokens=prev_context_tokens,
    )
