# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Service container.

Constructed once per process (or session) and passed to the code that needs
it; ``close()`` drops every tree, cache entry and access counter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from langchain_core.language_models import BaseChatModel

from context_budget.config import Settings, settings as default_settings
from context_budget.models import ContextManagementResult
from context_budget.services.context.cache import TokenCountingCache, summarize_stats
from context_budget.services.context.compressor import SemanticCompressor
from context_budget.services.context.hierarchy import HierarchicalSummarizer
from context_budget.services.context.manager import ContextManagementOptions, manage_context
from context_budget.services.context.prioritizer import ContextPrioritizer
from context_budget.services.context.settings import (
    CompressorConfig,
    PrioritizationConfig,
    SummarizerConfig,
)
from context_budget.services.context.tokens import TiktokenCounter, TokenCounter
from context_budget.services.telemetry import LoggingTelemetry, TelemetrySink

logger = logging.getLogger(__name__)


@dataclass
class ContextServices:
    """Shared engine state for one process or session.

    Attributes:
        settings (Settings): Engine settings.
        token_counter (TokenCounter): Default counting collaborator.
        token_cache (TokenCountingCache): Shared token-count cache.
        prioritizer (ContextPrioritizer): Context ranking with feedback.
        compressor (SemanticCompressor): Text compressor with its cache.
        hierarchy (Optional[HierarchicalSummarizer]): Summary trees, present
            when a model was supplied.
        telemetry (TelemetrySink): Event sink.
    """

    settings: Settings
    token_counter: TokenCounter
    token_cache: TokenCountingCache
    prioritizer: ContextPrioritizer
    compressor: SemanticCompressor
    hierarchy: Optional[HierarchicalSummarizer]
    telemetry: TelemetrySink

    async def manage_context(self, options: ContextManagementOptions) -> ContextManagementResult:
        """``manage_context`` with this container's cache and sink as defaults."""
        options = replace(
            options,
            token_cache=options.token_cache or self.token_cache,
            telemetry=options.telemetry or self.telemetry,
        )
        return await manage_context(options)

    def close(self) -> None:
        """Release all in-memory state."""
        logger.info("Closing context services (token cache: %s)", summarize_stats(self.token_cache.stats))
        self.token_cache.clear()
        self.compressor.clear_cache()
        self.prioritizer.clear_tracking()
        if self.hierarchy is not None:
            self.hierarchy.clear_all()


def create_context_services(
    llm: Optional[BaseChatModel] = None,
    settings: Optional[Settings] = None,
    token_counter: Optional[TokenCounter] = None,
    telemetry: Optional[TelemetrySink] = None,
    prioritization: Optional[PrioritizationConfig] = None,
    compression: Optional[CompressorConfig] = None,
    summarization: Optional[SummarizerConfig] = None,
) -> ContextServices:
    """Build a ``ContextServices`` container.

    Args:
        llm (Optional[BaseChatModel]): Model for hierarchical summaries.
        settings (Optional[Settings]): Engine settings; module defaults if
            omitted.
        token_counter (Optional[TokenCounter]): Counting collaborator.
        telemetry (Optional[TelemetrySink]): Event sink.
        prioritization (Optional[PrioritizationConfig]): Prioritizer tunables.
        compression (Optional[CompressorConfig]): Compressor tunables.
        summarization (Optional[SummarizerConfig]): Summary tree tunables.

    Returns:
        ContextServices: The container.
    """
    cfg = settings or default_settings
    return ContextServices(
        settings=cfg,
        token_counter=token_counter or TiktokenCounter(cfg.TOKENIZER_MODEL),
        token_cache=TokenCountingCache(
            max_entries=cfg.TOKEN_CACHE_MAX_ENTRIES,
            ttl=cfg.TOKEN_CACHE_TTL_SECONDS,
        ),
        prioritizer=ContextPrioritizer(prioritization),
        compressor=SemanticCompressor(compression, cache_max_entries=cfg.COMPRESSION_CACHE_MAX_ENTRIES),
        hierarchy=HierarchicalSummarizer(llm, summarization) if llm is not None else None,
        telemetry=telemetry or LoggingTelemetry(),
    )
