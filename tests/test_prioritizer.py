# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for context prioritization."""

import math

import pytest
from context_budget.services.context.prioritizer import (
    ContextCandidate,
    ContextPrioritizer,
    PrioritizationContext,
    PrioritizedContextItem,
    apply_boosts,
    combine_scores,
    frequency_score,
    pack_by_budget,
    priority_for_score,
    recency_score,
)
from context_budget.services.context.settings import PrioritizationConfig


def _item(item_id: str, tokens: int, score: float = 0.5) -> PrioritizedContextItem:
    return PrioritizedContextItem(
        id=item_id,
        content=item_id,
        type="file",
        source=item_id,
        priority=priority_for_score(score),
        relevance_score=score,
        recency_score=score,
        frequency_score=0.0,
        combined_score=score,
        token_count=tokens,
    )


def _candidate(item_id: str, tokens: int = 10, **kwargs) -> ContextCandidate:
    return ContextCandidate(
        id=item_id,
        content=f"content of {item_id}",
        type=kwargs.pop("type", "file"),
        source=kwargs.pop("source", item_id),
        token_count=tokens,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Scoring heuristics
# ---------------------------------------------------------------------------


class TestRecencyScore:
    """Tests for recency_score."""

    def test_unknown_age_is_neutral(self):
        assert recency_score(None) == 0.5

    def test_fresh_item(self):
        assert recency_score(0.5) == 1.0
        assert recency_score(1.0) == 1.0

    def test_stale_item(self):
        assert recency_score(24.0) == 0.1
        assert recency_score(100.0) == 0.1

    def test_decay(self):
        """Verify exponential decay between the bounds."""
        assert recency_score(12.0) == pytest.approx(math.exp(-1.5))
        assert recency_score(2.0) > recency_score(12.0)


class TestFrequencyScore:
    """Tests for frequency_score."""

    def test_never_accessed(self):
        assert frequency_score(0) == 0.0

    def test_logarithmic(self):
        assert frequency_score(9) == pytest.approx(0.5)
        assert frequency_score(99) == pytest.approx(1.0)

    def test_saturates(self):
        assert frequency_score(10_000) == 1.0


class TestCombineAndBoost:
    """Tests for combine_scores, apply_boosts and priority_for_score."""

    def test_weighted_sum(self):
        config = PrioritizationConfig()
        assert combine_scores(1.0, 1.0, 1.0, config) == pytest.approx(1.0)
        assert combine_scores(1.0, 0.0, 0.0, config) == pytest.approx(0.5)

    def test_mention_boost(self):
        context = PrioritizationContext(token_budget=100, mentioned_items=["a"])
        assert apply_boosts(0.5, "a", "x.py", context, PrioritizationConfig()) == pytest.approx(0.75)
        assert apply_boosts(0.5, "b", "x.py", context, PrioritizationConfig()) == pytest.approx(0.5)

    def test_boosts_multiply_and_cap(self):
        """Verify stacked boosts are capped at 1.0."""
        context = PrioritizationContext(
            token_budget=100,
            active_file_path="x.py",
            recently_edited_files=["x.py"],
            mentioned_items=["a"],
        )
        assert apply_boosts(0.8, "a", "x.py", context, PrioritizationConfig()) == 1.0
        assert apply_boosts(0.5, "b", "x.py", context, PrioritizationConfig()) == pytest.approx(
            0.5 * 1.3 * 1.2
        )

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.95, "critical"),
            (0.9, "critical"),
            (0.75, "high"),
            (0.5, "medium"),
            (0.3, "low"),
            (0.1, "minimal"),
        ],
    )
    def test_priority_buckets(self, score, expected):
        assert priority_for_score(score) == expected


class TestPackByBudget:
    """Tests for pack_by_budget."""

    def test_skips_items_that_do_not_fit(self):
        """Verify a large item does not block smaller ones behind it."""
        included, excluded, used = pack_by_budget(
            [_item("a", 60), _item("b", 50), _item("c", 30)], 100
        )
        assert [i.id for i in included] == ["a", "c"]
        assert [i.id for i in excluded] == ["b"]
        assert used == 90

    def test_empty(self):
        assert pack_by_budget([], 100) == ([], [], 0)


# ---------------------------------------------------------------------------
# ContextPrioritizer
# ---------------------------------------------------------------------------


class TestContextPrioritizer:
    """Tests for ContextPrioritizer."""

    def test_orders_by_score(self):
        """Verify more relevant items rank first."""
        prioritizer = ContextPrioritizer()
        result = prioritizer.prioritize(
            [
                _candidate("low", relevance_score=0.1),
                _candidate("high", relevance_score=0.9),
                _candidate("mid", relevance_score=0.5),
            ],
            PrioritizationContext(token_budget=1_000),
        )
        assert [i.id for i in result.included_items] == ["high", "mid", "low"]
        assert result.total_tokens == 30
        assert result.remaining_budget == 970
        assert result.stats["included_count"] == 3

    def test_respects_budget(self):
        prioritizer = ContextPrioritizer()
        result = prioritizer.prioritize(
            [
                _candidate("a", tokens=80, relevance_score=0.9),
                _candidate("b", tokens=80, relevance_score=0.8),
                _candidate("c", tokens=20, relevance_score=0.1),
            ],
            PrioritizationContext(token_budget=100),
        )
        assert [i.id for i in result.included_items] == ["a", "c"]
        assert [i.id for i in result.excluded_items] == ["b"]
        assert result.total_tokens <= 100

    def test_mention_outranks_relevance(self):
        """Verify an explicitly mentioned item is lifted above a plain one."""
        prioritizer = ContextPrioritizer()
        result = prioritizer.prioritize(
            [_candidate("plain", relevance_score=0.6), _candidate("named", relevance_score=0.5)],
            PrioritizationContext(token_budget=1_000, mentioned_items=["named"]),
        )
        assert result.included_items[0].id == "named"

    def test_access_tracking(self):
        """Verify each prioritization counts one access per candidate."""
        prioritizer = ContextPrioritizer()
        context = PrioritizationContext(token_budget=1_000)

        first = prioritizer.prioritize([_candidate("a")], context)
        assert first.included_items[0].frequency_score == 0.0
        assert prioritizer.access_count("a") == 1

        second = prioritizer.prioritize([_candidate("a")], context)
        assert second.included_items[0].frequency_score > 0.0
        assert prioritizer.access_count("a") == 2

    def test_score_does_not_track(self):
        prioritizer = ContextPrioritizer()
        prioritizer.score(_candidate("a"), PrioritizationContext(token_budget=10))
        assert prioritizer.access_count("a") == 0

    def test_feedback(self):
        """Verify useful feedback adds 5, unhelpful removes 2, floored at 0."""
        prioritizer = ContextPrioritizer()
        prioritizer.apply_feedback("a", True)
        assert prioritizer.access_count("a") == 5
        prioritizer.apply_feedback("a", False)
        assert prioritizer.access_count("a") == 3

        prioritizer.apply_feedback("b", False)
        assert prioritizer.access_count("b") == 0

    def test_stats_and_clear(self):
        prioritizer = ContextPrioritizer()
        prioritizer.apply_feedback("a", True)
        prioritizer.apply_feedback("b", True)
        prioritizer.apply_feedback("b", True)

        stats = prioritizer.get_stats()
        assert stats["tracked_items"] == 2
        assert stats["avg_access_count"] == 7.5
        assert stats["top_items"][0] == {"id": "b", "access_count": 10}

        prioritizer.clear_tracking()
        assert prioritizer.get_stats()["tracked_items"] == 0
