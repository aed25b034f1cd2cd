# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Condense trigger resolution.

Pure computation of the effective token budget and the condensation
threshold from model limits, the global percent default and per-profile
overrides. Shared by ``manage_context`` and ``will_manage_context`` so the
two never disagree.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from context_budget.config import (
    MAX_CONDENSE_THRESHOLD,
    MIN_CONDENSE_THRESHOLD,
    PROFILE_THRESHOLD_INHERIT,
    TOKEN_BUFFER_PERCENTAGE,
    settings,
)


class TriggerMode(str, Enum):
    """How the condense threshold is compared.

    Attributes:
        GLOBAL_PERCENT (str): Percent of the full context window.
        PROFILE_PERCENT (str): Profile percent converted to absolute tokens.
        PROFILE_TOKENS (str): Absolute profile token threshold.
    """

    GLOBAL_PERCENT = "global_percent"
    PROFILE_PERCENT = "profile_percent"
    PROFILE_TOKENS = "profile_tokens"


class OverrideMode(str, Enum):
    """Unit of a profile condense override."""

    PERCENT = "percent"
    TOKENS = "tokens"


@dataclass(frozen=True)
class ProfileCondenseOverride:
    """Per-profile condense threshold override.

    Attributes:
        enabled (bool): Whether the override is active.
        mode (OverrideMode): ``percent`` or ``tokens``.
        percent (float): Threshold percent (``percent`` mode).
        tokens (int): Threshold in tokens (``tokens`` mode).
    """

    enabled: bool = False
    mode: OverrideMode = OverrideMode.PERCENT
    percent: float = 100
    tokens: int = 0


@dataclass(frozen=True)
class CondenseTrigger:
    """Resolved budget and threshold.

    Attributes:
        reserved_tokens (int): Tokens reserved for the model's output.
        allowed_tokens (float): Usable input tokens (may be fractional or
            negative for tiny windows).
        effective_budget (int): ``max(0, floor(allowed_tokens))``.
        mode (TriggerMode): Which comparison applies.
        threshold_percent (Optional[float]): Percent threshold, if any.
        threshold_tokens (Optional[int]): Absolute threshold, if any.
    """

    reserved_tokens: int
    allowed_tokens: float
    effective_budget: int
    mode: TriggerMode
    threshold_percent: Optional[float] = None
    threshold_tokens: Optional[int] = None


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp *value* into ``[lo, hi]``."""
    return min(max(value, lo), hi)


def resolve_condense_trigger(
    context_window: int,
    max_tokens: Optional[int],
    auto_condense_context_percent: float,
    profile_thresholds: Optional[Mapping[str, float]] = None,
    profile_condense_overrides: Optional[Mapping[str, ProfileCondenseOverride]] = None,
    current_profile_id: str = "default",
    default_max_tokens: Optional[int] = None,
) -> CondenseTrigger:
    """Compute the effective budget and condense threshold.

    Args:
        context_window (int): Model context window in tokens.
        max_tokens (Optional[int]): Declared output limit; non-positive or
            ``None`` falls back to *default_max_tokens*.
        auto_condense_context_percent (float): Global threshold percent.
        profile_thresholds (Optional[Mapping[str, float]]): Per-profile
            percent thresholds; ``-1`` inherits the global value and
            out-of-range values are ignored.
        profile_condense_overrides (Optional[Mapping[str, ProfileCondenseOverride]]):
            Per-profile overrides, applied only when enabled.
        current_profile_id (str): Active profile.
        default_max_tokens (Optional[int]): Model-family output reservation.
            Defaults to ``settings.DEFAULT_MAX_TOKENS``.

    Returns:
        CondenseTrigger: The resolved trigger.
    """
    if default_max_tokens is None:
        default_max_tokens = settings.DEFAULT_MAX_TOKENS
    reserved_tokens = max_tokens if max_tokens and max_tokens > 0 else default_max_tokens
    allowed_tokens = context_window * (1 - TOKEN_BUFFER_PERCENTAGE) - reserved_tokens
    effective_budget = max(0, math.floor(allowed_tokens))

    override = (profile_condense_overrides or {}).get(current_profile_id)
    if override is not None and override.enabled:
        if override.mode == OverrideMode.TOKENS:
            threshold_tokens = int(clamp(math.floor(override.tokens), 1, max(1, effective_budget)))
            return CondenseTrigger(
                reserved_tokens=reserved_tokens,
                allowed_tokens=allowed_tokens,
                effective_budget=effective_budget,
                mode=TriggerMode.PROFILE_TOKENS,
                threshold_tokens=threshold_tokens,
            )

        percent = clamp(math.floor(override.percent), MIN_CONDENSE_THRESHOLD, MAX_CONDENSE_THRESHOLD)
        threshold_tokens = max(1, math.floor(percent / 100 * max(1, effective_budget)))
        return CondenseTrigger(
            reserved_tokens=reserved_tokens,
            allowed_tokens=allowed_tokens,
            effective_budget=effective_budget,
            mode=TriggerMode.PROFILE_PERCENT,
            threshold_percent=percent,
            threshold_tokens=threshold_tokens,
        )

    threshold = auto_condense_context_percent
    profile_threshold = (profile_thresholds or {}).get(current_profile_id)
    if profile_threshold is not None and profile_threshold != PROFILE_THRESHOLD_INHERIT:
        if MIN_CONDENSE_THRESHOLD <= profile_threshold <= MAX_CONDENSE_THRESHOLD:
            threshold = profile_threshold

    return CondenseTrigger(
        reserved_tokens=reserved_tokens,
        allowed_tokens=allowed_tokens,
        effective_budget=effective_budget,
        mode=TriggerMode.GLOBAL_PERCENT,
        threshold_percent=threshold,
    )


def exceeds_threshold(
    prev_context_tokens: int,
    context_window: int,
    trigger: CondenseTrigger,
) -> bool:
    """Whether the context should be condensed under *trigger*.

    True when the context overflows ``allowed_tokens``, or reaches the
    percent threshold (global mode) or the token threshold (profile modes).

    Args:
        prev_context_tokens (int): Context size including the newest message.
        context_window (int): Model context window in tokens.
        trigger (CondenseTrigger): Resolved trigger.

    Returns:
        bool: ``True`` if condensation should run.
    """
    if prev_context_tokens > trigger.allowed_tokens:
        return True
    if trigger.mode == TriggerMode.GLOBAL_PERCENT:
        if context_window <= 0:
            return True
        context_percent = 100 * prev_context_tokens / context_window
        return context_percent >= (trigger.threshold_percent or 0)
    return prev_context_tokens >= (trigger.threshold_tokens or 1)
