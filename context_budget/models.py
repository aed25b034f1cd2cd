# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Shared models for the context budgeting engine."""

import time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class MessageRole(str, Enum):
    """Message role enumeration.

    Attributes:
        USER (str): User role.
        ASSISTANT (str): Assistant role.
    """

    USER = "user"
    ASSISTANT = "assistant"


class TextBlock(BaseModel):
    """Plain text content block.

    Attributes:
        type (Literal["text"]): Content type discriminator.
        text (str): The text value.
    """

    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    """Inline image content block.

    Attributes:
        type (Literal["image"]): Content type discriminator.
        media_type (str): MIME type of the image.
        data (str): Base64-encoded image payload.
    """

    type: Literal["image"] = "image"
    media_type: str = "image/png"
    data: str = ""


class ToolUseBlock(BaseModel):
    """Tool invocation emitted by the assistant.

    Attributes:
        type (Literal["tool_use"]): Content type discriminator.
        id (str): Identifier correlating the call and its result.
        name (str): Tool name.
        input (Dict[str, Any]): Tool arguments.
    """

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """Result of a tool invocation.

    Attributes:
        type (Literal["tool_result"]): Content type discriminator.
        tool_use_id (str): Identifier of the originating tool_use block.
        content (str): Tool output text.
    """

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str = ""


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock]


class Message(BaseModel):
    """Conversation message.

    Messages are never deleted by the engine. Truncation hides them by
    setting ``truncation_parent``; rewinding clears it again.

    Attributes:
        role (MessageRole): The role of the message sender.
        content (Union[str, List[ContentBlock]]): Plain text or ordered
            content blocks.
        ts (int): Creation time in epoch milliseconds.
        truncation_parent (Optional[str]): Id of the truncation event that
            hid this message.
        is_truncation_marker (bool): Whether this is a synthetic truncation
            marker.
        truncation_id (Optional[str]): Id of the truncation event a marker
            belongs to.
        is_summary (bool): Whether this message carries a condensed summary.
    """

    role: MessageRole
    content: Union[str, List[ContentBlock]]
    ts: int = Field(default_factory=now_ms)
    truncation_parent: Optional[str] = None
    is_truncation_marker: bool = False
    truncation_id: Optional[str] = None
    is_summary: bool = False

    @property
    def is_visible(self) -> bool:
        """Whether the message is sent to the model (not hidden, not a marker)."""
        return self.truncation_parent is None and not self.is_truncation_marker

    def content_blocks(self) -> List[ContentBlock]:
        """Content normalised to a list of blocks."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    def text(self) -> str:
        """Concatenated text of all text blocks."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))


class SummarizeResponse(BaseModel):
    """Outcome of a summarization collaborator call.

    Attributes:
        messages (List[Message]): The condensed message list, or the input
            list unchanged on failure.
        summary (str): Summary text, empty on failure.
        cost (float): Spend incurred, reported even on failure.
        new_context_tokens (Optional[int]): Estimated context size after
            condensation.
        error (Optional[str]): Human-readable failure reason.
    """

    messages: List[Message]
    summary: str = ""
    cost: float = 0.0
    new_context_tokens: Optional[int] = None
    error: Optional[str] = None


class ContextManagementResult(SummarizeResponse):
    """Result of one ``manage_context`` pass.

    Attributes:
        prev_context_tokens (int): Context size before management, including
            the newest message.
        truncation_id (Optional[str]): Id of the truncation event, if any.
        messages_removed (Optional[int]): Number of messages hidden by
            truncation.
        new_context_tokens_after_truncation (Optional[int]): Visible context
            size after truncation, including the system prompt.
    """

    prev_context_tokens: int
    truncation_id: Optional[str] = None
    messages_removed: Optional[int] = None
    new_context_tokens_after_truncation: Optional[int] = None
