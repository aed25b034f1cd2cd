# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Sliding-window truncation.

Fallback used when condensation is disabled, fails, or leaves the context
over budget. Messages are never removed: hidden messages are tagged with
``truncation_parent`` and a marker message records the event, so a rewind
past the marker can restore them.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from context_budget.models import Message, MessageRole, now_ms

logger = logging.getLogger(__name__)

TRUNCATION_MARKER_TEMPLATE = (
    "[Sliding window truncation: {count} messages hidden to reduce context]"
)


@dataclass(frozen=True)
class TruncationResult:
    """Outcome of one truncation event.

    Attributes:
        messages (List[Message]): Full message list, hidden messages tagged
            and the marker inserted.
        truncation_id (str): Identifier of this truncation event.
        messages_removed (int): Number of messages hidden (even, or 0).
    """

    messages: List[Message] = field(default_factory=list)
    truncation_id: str = ""
    messages_removed: int = 0


def visible_indices(messages: List[Message]) -> List[int]:
    """Indices of messages neither hidden nor markers."""
    return [i for i, m in enumerate(messages) if m.is_visible]


def messages_to_hide(visible_count: int, frac_to_remove: float) -> int:
    """How many visible messages a truncation hides.

    ``floor((visible_count - 1) * frac)`` rounded down to an even number;
    the first visible message is never counted.

    Args:
        visible_count (int): Number of visible messages.
        frac_to_remove (float): Fraction in ``[0, 1]``.

    Returns:
        int: Even count, or 0 when nothing can be hidden.
    """
    raw = int((visible_count - 1) * frac_to_remove) if visible_count > 1 else 0
    return max(0, raw - raw % 2)


def truncate_conversation(
    messages: List[Message],
    frac_to_remove: float,
    truncation_id: Optional[str] = None,
) -> TruncationResult:
    """Hide the oldest visible messages after the first one.

    Args:
        messages (List[Message]): Conversation messages (not mutated).
        frac_to_remove (float): Fraction of visible messages, excluding the
            first, to hide.
        truncation_id (Optional[str]): Event id; a UUID is generated when
            omitted.

    Returns:
        TruncationResult: Tagged messages with a marker inserted before the
            first surviving visible message, or the input unchanged with
            ``messages_removed == 0``.

    Raises:
        ValueError: If *frac_to_remove* is outside ``[0, 1]``.
    """
    if not 0 <= frac_to_remove <= 1:
        raise ValueError(f"frac_to_remove must be within [0, 1], got {frac_to_remove}")

    truncation_id = truncation_id or str(uuid.uuid4())
    visible = visible_indices(messages)
    to_remove = messages_to_hide(len(visible), frac_to_remove)

    if to_remove <= 0:
        return TruncationResult(messages=messages, truncation_id=truncation_id, messages_removed=0)

    hidden = set(visible[1 : to_remove + 1])
    tagged = [
        m.model_copy(update={"truncation_parent": truncation_id}) if i in hidden else m
        for i, m in enumerate(messages)
    ]

    insert_at = visible[to_remove + 1] if to_remove + 1 < len(visible) else len(tagged)
    first_kept_ts = messages[insert_at].ts if insert_at < len(messages) else now_ms()
    marker = Message(
        role=MessageRole.USER,
        content=TRUNCATION_MARKER_TEMPLATE.format(count=to_remove),
        ts=first_kept_ts - 1,
        is_truncation_marker=True,
        truncation_id=truncation_id,
    )

    logger.info("Sliding window hid %d of %d visible message(s)", to_remove, len(visible))
    return TruncationResult(
        messages=tagged[:insert_at] + [marker] + tagged[insert_at:],
        truncation_id=truncation_id,
        messages_removed=to_remove,
    )
