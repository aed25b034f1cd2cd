# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Telemetry sink for context management events.

Emission is fire-and-forget: a failing sink is logged and never fails the
conversation turn.
"""

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Receiver of context management events."""

    def capture_sliding_window_truncation(self, task_id: str) -> None:
        ...

    def capture_context_condensed(
        self,
        task_id: str,
        is_automatic_trigger: bool,
        used_custom_prompt: bool = False,
    ) -> None:
        ...


class LoggingTelemetry:
    """Default sink that records events through ``logging``."""

    def capture_sliding_window_truncation(self, task_id: str) -> None:
        logger.info("telemetry: sliding_window_truncation task=%s", task_id)

    def capture_context_condensed(
        self,
        task_id: str,
        is_automatic_trigger: bool,
        used_custom_prompt: bool = False,
    ) -> None:
        logger.info(
            "telemetry: context_condensed task=%s automatic=%s custom_prompt=%s",
            task_id,
            is_automatic_trigger,
            used_custom_prompt,
        )


def emit_truncation(sink: Optional[TelemetrySink], task_id: str) -> None:
    """Report a truncation event, swallowing sink errors."""
    if sink is None:
        return
    try:
        sink.capture_sliding_window_truncation(task_id)
    except Exception as e:
        logger.warning("Telemetry sink failed on truncation event: %s", e)


def emit_condensed(
    sink: Optional[TelemetrySink],
    task_id: str,
    is_automatic_trigger: bool,
    used_custom_prompt: bool = False,
) -> None:
    """Report a condensation event, swallowing sink errors."""
    if sink is None:
        return
    try:
        sink.capture_context_condensed(task_id, is_automatic_trigger, used_custom_prompt)
    except Exception as e:
        logger.warning("Telemetry sink failed on condense event: %s", e)
