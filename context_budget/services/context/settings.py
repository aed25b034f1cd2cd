# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Component settings.

Tunables for the prioritizer, compressor and hierarchical summarizer.
Process-wide values (budgets, cache sizes) live in ``context_budget.config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

SUMMARY_LEVELS = ("minimal", "brief", "standard", "detailed")
COMPRESSION_LEVELS = ("none", "light", "moderate", "aggressive")


@dataclass(frozen=True)
class PrioritizationConfig:
    """Weights and boosts for context prioritization.

    Attributes:
        relevance_weight (float): Weight of the caller-supplied relevance.
        recency_weight (float): Weight of the age-based recency score.
        frequency_weight (float): Weight of the access-count score.
        max_age_hours (float): Age at which recency bottoms out.
        min_recency_score (float): Recency score for items at or past
            ``max_age_hours``.
        default_relevance (float): Relevance used when none is supplied.
        mention_boost (float): Multiplier for explicitly mentioned items.
        active_file_boost (float): Multiplier for items from the active file.
        recent_edit_boost (float): Multiplier for recently edited files.
        useful_feedback_delta (int): Access-count bump for useful feedback.
        useless_feedback_delta (int): Access-count drop for unhelpful feedback.
    """

    relevance_weight: float = 0.5
    recency_weight: float = 0.3
    frequency_weight: float = 0.2
    max_age_hours: float = 24.0
    min_recency_score: float = 0.1
    default_relevance: float = 0.5
    mention_boost: float = 1.5
    active_file_boost: float = 1.3
    recent_edit_boost: float = 1.2
    useful_feedback_delta: int = 5
    useless_feedback_delta: int = 2


@dataclass(frozen=True)
class CompressorConfig:
    """Semantic compression behaviour.

    Attributes:
        preserve_code_blocks (bool): Protect fenced and inline code.
        preserve_urls (bool): Protect http(s) URLs.
        preserve_file_paths (bool): Protect path-like substrings.
        min_content_length (int): Shorter inputs are returned unchanged.
        stopword_drop_ratio (float): Share of stopword occurrences removed
            at the ``moderate`` level.
        aggressive_keep_ratio (float): Share of sentences kept at the
            ``aggressive`` level.
        aggressive_min_sentences (int): Floor on sentences kept.
        target_ratios (Dict[str, float]): Nominal compression ratio per level.
    """

    preserve_code_blocks: bool = True
    preserve_urls: bool = True
    preserve_file_paths: bool = True
    min_content_length: int = 100
    stopword_drop_ratio: float = 0.5
    aggressive_keep_ratio: float = 0.4
    aggressive_min_sentences: int = 2
    target_ratios: Dict[str, float] = field(
        default_factory=lambda: {"none": 1.0, "light": 0.8, "moderate": 0.5, "aggressive": 0.3}
    )


@dataclass(frozen=True)
class SummarizerConfig:
    """Hierarchical summarization configuration.

    Attributes:
        level_token_targets (Dict[str, int]): Target summary length per level.
        min_messages_for_summary (int): A range is split into two children
            only when it holds at least twice this many messages.
        max_messages_per_node (int): Soft cap reported in stats.
        build_split (int): Segments per node while building the tree.
        expand_split (int): Segments per node when expanding on demand.
        custom_prompts (Optional[Dict[str, str]]): Per-level prompt overrides.
    """

    level_token_targets: Dict[str, int] = field(
        default_factory=lambda: {"detailed": 2000, "standard": 1000, "brief": 500, "minimal": 200}
    )
    min_messages_for_summary: int = 5
    max_messages_per_node: int = 20
    build_split: int = 2
    expand_split: int = 3
    custom_prompts: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token prices used to report condensation cost.

    Attributes:
        input_per_million (float): Price of one million prompt tokens.
        output_per_million (float): Price of one million completion tokens.
    """

    input_per_million: float = 0.0
    output_per_million: float = 0.0

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        """Cost of a single call.

        Args:
            input_tokens (int): Prompt tokens billed.
            output_tokens (int): Completion tokens billed.

        Returns:
            float: Cost in the pricing currency.
        """
        return (
            input_tokens * self.input_per_million + output_tokens * self.output_per_million
        ) / 1_000_000
