# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context budgeting module.

Keeps a conversation inside the model's context window before every call:

  Trigger        (trigger.py)
      Effective budget and condense threshold from model limits, the global
      percent default and per-profile overrides.

  Condensation   (summarizer.py, hierarchy.py)
      Replace the middle of the conversation with an LLM summary, either in
      one call or through a multi-level summary tree.

  Truncation     (truncation.py)
      Non-destructive fallback: hide the oldest visible messages behind a
      marker when condensation is unavailable or fails.

  Supporting services
      Token-count cache (cache.py, tokens.py), context prioritizer
      (prioritizer.py) and semantic compressor (compressor.py).

Usage:

    services = create_context_services(llm)
    result = await services.manage_context(
        ContextManagementOptions(
            messages=messages,
            total_tokens=total_tokens,
            context_window=200_000,
            system_prompt=system_prompt,
            task_id=task_id,
            token_counter=services.token_counter,
            summarizer=LLMConversationSummarizer(llm, token_cache=services.token_cache),
        )
    )
    ...
    services.close()
"""

from context_budget.services.context.cache import LRUCache, TokenCountingCache
from context_budget.services.context.compressor import CompressedContent, SemanticCompressor
from context_budget.services.context.hierarchy import (
    HierarchicalSummarizer,
    MessageRange,
    SummaryNode,
    SummaryTree,
)
from context_budget.services.context.manager import (
    ContextManagementOptions,
    WillManageContextOptions,
    manage_context,
    will_manage_context,
)
from context_budget.services.context.prioritizer import (
    ContextCandidate,
    ContextPrioritizer,
    PrioritizationContext,
    PrioritizationResult,
    PrioritizedContextItem,
)
from context_budget.services.context.registry import ContextServices, create_context_services
from context_budget.services.context.settings import (
    CompressorConfig,
    ModelPricing,
    PrioritizationConfig,
    SummarizerConfig,
)
from context_budget.services.context.summarizer import (
    ConversationSummarizer,
    LLMConversationSummarizer,
    TreeConversationSummarizer,
)
from context_budget.services.context.tokens import (
    TiktokenCounter,
    TokenCounter,
    count_content_tokens,
    estimate_tokens,
)
from context_budget.services.context.trigger import (
    CondenseTrigger,
    OverrideMode,
    ProfileCondenseOverride,
    TriggerMode,
    resolve_condense_trigger,
)
from context_budget.services.context.truncation import TruncationResult, truncate_conversation

__all__ = [
    "LRUCache",
    "TokenCountingCache",
    "CompressedContent",
    "SemanticCompressor",
    "HierarchicalSummarizer",
    "MessageRange",
    "SummaryNode",
    "SummaryTree",
    "ContextManagementOptions",
    "WillManageContextOptions",
    "manage_context",
    "will_manage_context",
    "ContextCandidate",
    "ContextPrioritizer",
    "PrioritizationContext",
    "PrioritizationResult",
    "PrioritizedContextItem",
    "ContextServices",
    "create_context_services",
    "CompressorConfig",
    "ModelPricing",
    "PrioritizationConfig",
    "SummarizerConfig",
    "ConversationSummarizer",
    "LLMConversationSummarizer",
    "TreeConversationSummarizer",
    "TiktokenCounter",
    "TokenCounter",
    "count_content_tokens",
    "estimate_tokens",
    "CondenseTrigger",
    "OverrideMode",
    "ProfileCondenseOverride",
    "TriggerMode",
    "resolve_condense_trigger",
    "TruncationResult",
    "truncate_conversation",
]
