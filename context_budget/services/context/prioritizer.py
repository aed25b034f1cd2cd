# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context prioritization.

Ranks candidate context items (files, symbols, memories, documentation,
conversation snippets) by a weighted score and greedily packs the best ones
into a token budget. Each scoring step is a standalone function so it can be
tested without a prioritizer instance.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from context_budget.services.context.settings import PrioritizationConfig

logger = logging.getLogger(__name__)

ItemType = Literal["file", "symbol", "memory", "documentation", "conversation"]
PriorityLevel = Literal["critical", "high", "medium", "low", "minimal"]

PRIORITY_LEVELS: Tuple[PriorityLevel, ...] = ("critical", "high", "medium", "low", "minimal")
_PRIORITY_THRESHOLDS: Tuple[Tuple[float, PriorityLevel], ...] = (
    (0.9, "critical"),
    (0.7, "high"),
    (0.5, "medium"),
    (0.3, "low"),
)
NEUTRAL_RECENCY = 0.5
FREQUENCY_SATURATION = 100


@dataclass(frozen=True)
class ContextCandidate:
    """An item offered for inclusion in the context.

    Attributes:
        id (str): Stable identifier used for access tracking.
        content (str): Item text.
        type (ItemType): Kind of item.
        source (str): Origin, e.g. a file path.
        token_count (int): Estimated tokens of ``content``.
        relevance_score (Optional[float]): Caller-supplied relevance in [0, 1].
        age_hours (Optional[float]): Age of the item in hours.
        metadata (Dict[str, Any]): Opaque caller data.
    """

    id: str
    content: str
    type: ItemType
    source: str
    token_count: int
    relevance_score: Optional[float] = None
    age_hours: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PrioritizedContextItem:
    """A scored candidate.

    Attributes:
        id (str): Candidate id.
        content (str): Item text.
        type (ItemType): Kind of item.
        source (str): Origin of the item.
        priority (PriorityLevel): Bucket derived from ``combined_score``.
        relevance_score (float): Relevance sub-score.
        recency_score (float): Recency sub-score.
        frequency_score (float): Frequency sub-score.
        combined_score (float): Weighted, boosted score in [0, 1].
        token_count (int): Estimated tokens.
        metadata (Dict[str, Any]): Opaque caller data.
    """

    id: str
    content: str
    type: ItemType
    source: str
    priority: PriorityLevel
    relevance_score: float
    recency_score: float
    frequency_score: float
    combined_score: float
    token_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PrioritizationContext:
    """Request-specific signals for one prioritization.

    Attributes:
        token_budget (int): Maximum total tokens to include.
        active_file_path (Optional[str]): File currently open.
        recently_edited_files (Sequence[str]): Files edited recently.
        mentioned_items (Sequence[str]): Item ids mentioned in the query.
        current_topic (Optional[str]): Topic of the conversation.
    """

    token_budget: int
    active_file_path: Optional[str] = None
    recently_edited_files: Sequence[str] = ()
    mentioned_items: Sequence[str] = ()
    current_topic: Optional[str] = None


@dataclass
class PrioritizationResult:
    """Outcome of ``ContextPrioritizer.prioritize``.

    Attributes:
        included_items (List[PrioritizedContextItem]): Selected, best first.
        excluded_items (List[PrioritizedContextItem]): Items left out.
        total_tokens (int): Tokens of the included items.
        remaining_budget (int): Budget left after inclusion.
        stats (Dict[str, Any]): Counts, average score and bucket distribution.
    """

    included_items: List[PrioritizedContextItem]
    excluded_items: List[PrioritizedContextItem]
    total_tokens: int
    remaining_budget: int
    stats: Dict[str, Any]


# ---------------------------------------------------------------------------
# Scoring heuristics
# ---------------------------------------------------------------------------


def recency_score(
    age_hours: Optional[float],
    max_age_hours: float = 24.0,
    floor: float = 0.1,
) -> float:
    """Exponential decay over age.

    Items at most an hour old score 1.0; items at or beyond *max_age_hours*
    score *floor*; unknown age is neutral (0.5).

    Args:
        age_hours (Optional[float]): Item age in hours.
        max_age_hours (float): Age at which the score bottoms out.
        floor (float): Score for stale items.

    Returns:
        float: Score in ``[floor, 1]``.
    """
    if age_hours is None:
        return NEUTRAL_RECENCY
    if age_hours <= 1:
        return 1.0
    if age_hours >= max_age_hours:
        return floor
    return max(floor, math.exp(-age_hours / (max_age_hours / 3)))


def frequency_score(access_count: int) -> float:
    """Logarithmic access-count score, saturating at 100 accesses."""
    if access_count <= 0:
        return 0.0
    return min(1.0, math.log(access_count + 1) / math.log(FREQUENCY_SATURATION))


def combine_scores(
    relevance: float,
    recency: float,
    frequency: float,
    config: PrioritizationConfig,
) -> float:
    """Weighted sum of the three sub-scores."""
    return (
        relevance * config.relevance_weight
        + recency * config.recency_weight
        + frequency * config.frequency_weight
    )


def apply_boosts(
    score: float,
    item_id: str,
    source: str,
    context: PrioritizationContext,
    config: PrioritizationConfig,
) -> float:
    """Multiply in mention/active-file/recent-edit boosts, capped at 1.0."""
    boosted = score
    if item_id in context.mentioned_items:
        boosted *= config.mention_boost
    if context.active_file_path and source == context.active_file_path:
        boosted *= config.active_file_boost
    if source in context.recently_edited_files:
        boosted *= config.recent_edit_boost
    return min(1.0, boosted)


def priority_for_score(score: float) -> PriorityLevel:
    """Bucket a combined score."""
    for threshold, level in _PRIORITY_THRESHOLDS:
        if score >= threshold:
            return level
    return "minimal"


def pack_by_budget(
    items: Iterable[PrioritizedContextItem],
    token_budget: int,
) -> Tuple[List[PrioritizedContextItem], List[PrioritizedContextItem], int]:
    """Greedily include items, best first, while the budget allows.

    A large item that does not fit does not stop smaller items behind it
    from being included.

    Args:
        items (Iterable[PrioritizedContextItem]): Items sorted best first.
        token_budget (int): Maximum total tokens.

    Returns:
        Tuple[List[PrioritizedContextItem], List[PrioritizedContextItem], int]:
            Included items, excluded items and tokens used.
    """
    included: List[PrioritizedContextItem] = []
    excluded: List[PrioritizedContextItem] = []
    used = 0
    for item in items:
        if used + item.token_count <= token_budget:
            included.append(item)
            used += item.token_count
        else:
            excluded.append(item)
    return included, excluded, used


class ContextPrioritizer:
    """Scores context candidates and learns from usefulness feedback."""

    def __init__(self, config: Optional[PrioritizationConfig] = None) -> None:
        self.config = config or PrioritizationConfig()
        self._access_counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def access_count(self, item_id: str) -> int:
        with self._lock:
            return self._access_counts.get(item_id, 0)

    def score(
        self,
        candidate: ContextCandidate,
        context: PrioritizationContext,
    ) -> PrioritizedContextItem:
        """Score one candidate without recording an access."""
        relevance = (
            candidate.relevance_score
            if candidate.relevance_score is not None
            else self.config.default_relevance
        )
        recency = recency_score(
            candidate.age_hours, self.config.max_age_hours, self.config.min_recency_score
        )
        frequency = frequency_score(self.access_count(candidate.id))
        combined = apply_boosts(
            combine_scores(relevance, recency, frequency, self.config),
            candidate.id,
            candidate.source,
            context,
            self.config,
        )
        return PrioritizedContextItem(
            id=candidate.id,
            content=candidate.content,
            type=candidate.type,
            source=candidate.source,
            priority=priority_for_score(combined),
            relevance_score=relevance,
            recency_score=recency,
            frequency_score=frequency,
            combined_score=combined,
            token_count=candidate.token_count,
            metadata=candidate.metadata,
        )

    def prioritize(
        self,
        candidates: Sequence[ContextCandidate],
        context: PrioritizationContext,
    ) -> PrioritizationResult:
        """Rank candidates and pack them into ``context.token_budget``.

        Every candidate counts as one access for future frequency scores.

        Args:
            candidates (Sequence[ContextCandidate]): Items to rank.
            context (PrioritizationContext): Budget and boost signals.

        Returns:
            PrioritizationResult: Included and excluded items with stats.
        """
        scored = [self.score(c, context) for c in candidates]
        for c in candidates:
            self._track_access(c.id)

        scored.sort(key=lambda item: item.combined_score, reverse=True)
        included, excluded, used = pack_by_budget(scored, context.token_budget)

        distribution = {level: 0 for level in PRIORITY_LEVELS}
        for item in included:
            distribution[item.priority] += 1
        avg = sum(i.combined_score for i in included) / len(included) if included else 0.0

        logger.debug(
            "Prioritized %d item(s): %d included, %d/%d tokens",
            len(scored),
            len(included),
            used,
            context.token_budget,
        )
        return PrioritizationResult(
            included_items=included,
            excluded_items=excluded,
            total_tokens=used,
            remaining_budget=context.token_budget - used,
            stats={
                "total_items": len(scored),
                "included_count": len(included),
                "excluded_count": len(excluded),
                "avg_score": avg,
                "priority_distribution": distribution,
            },
        )

    def apply_feedback(self, item_id: str, was_useful: bool) -> None:
        """Raise or lower an item's access count; never below zero."""
        with self._lock:
            current = self._access_counts.get(item_id, 0)
            if was_useful:
                self._access_counts[item_id] = current + self.config.useful_feedback_delta
            else:
                self._access_counts[item_id] = max(0, current - self.config.useless_feedback_delta)

    def get_stats(self) -> Dict[str, Any]:
        """Tracked item count, average access count and the top 10 items."""
        with self._lock:
            entries = list(self._access_counts.items())
        total = sum(count for _, count in entries)
        top = sorted(entries, key=lambda e: e[1], reverse=True)[:10]
        return {
            "tracked_items": len(entries),
            "avg_access_count": total / len(entries) if entries else 0.0,
            "top_items": [{"id": i, "access_count": c} for i, c in top],
        }

    def clear_tracking(self) -> None:
        """Forget all access counts."""
        with self._lock:
            self._access_counts.clear()

    def _track_access(self, item_id: str) -> None:
        with self._lock:
            self._access_counts[item_id] = self._access_counts.get(item_id, 0) + 1
