# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Hierarchical summarization.

Keeps one summary tree per conversation. The root summarizes the whole
conversation at the ``minimal`` level; each deeper level splits its parent's
message range into segments and summarizes them in more detail:

    minimal   [0 .......................... n)
    brief     [0 ........ n/2)[n/2 ........ n)
    standard  [0 .. n/4)[ .. n/2)[ .. 3n/4)[ .. n)
    detailed  built on demand by expand_node()

Nodes live in a flat id -> node table and reference each other by id.
A build works on a private tree that is published only once complete, so a
cancelled build never leaves a half-written tree behind.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from context_budget.models import Message, MessageRole
from context_budget.services.context.settings import SUMMARY_LEVELS, SummarizerConfig
from context_budget.services.context.tokens import estimate_tokens
from context_budget.services.prompts.base import SEGMENT_PROMPT, SUMMARY_LEVEL_PROMPTS

logger = logging.getLogger(__name__)

LEVEL_SEPARATOR = "\n\n---\n\n"
_BUILD_LEVELS = ("brief", "standard")


@dataclass(frozen=True)
class MessageRange:
    """Half-open ``[start_index, end_index)`` range of message indices."""

    start_index: int
    end_index: int

    @property
    def size(self) -> int:
        return self.end_index - self.start_index


@dataclass
class SummaryNode:
    """A node in the summary tree.

    Attributes:
        id (str): Unique node id.
        level (str): One of ``minimal``, ``brief``, ``standard``, ``detailed``.
        content (str): Summary text.
        token_count (int): Estimated tokens of ``content``.
        parent_id (Optional[str]): Parent node id, ``None`` for the root.
        child_ids (List[str]): Ordered child node ids.
        message_range (MessageRange): Messages this node summarizes.
        created_at (float): Epoch seconds at creation.
        metadata (Dict[str, Any]): Usage details of the generating call.
    """

    id: str
    level: str
    content: str
    token_count: int
    message_range: MessageRange
    parent_id: Optional[str] = None
    child_ids: List[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SummaryTree:
    """Summary nodes of one conversation.

    ``total_tokens`` always equals the sum of every node's ``token_count``;
    nodes must be added through ``add_node`` to keep it that way.

    Attributes:
        root_id (str): Id of the ``minimal`` root node.
        nodes (Dict[str, SummaryNode]): Node table keyed by id.
        total_tokens (int): Cumulative token count of all nodes.
        levels (List[str]): Levels present, most condensed first.
    """

    root_id: str = ""
    nodes: Dict[str, SummaryNode] = field(default_factory=dict)
    total_tokens: int = 0
    levels: List[str] = field(default_factory=list)

    def add_node(self, node: SummaryNode) -> None:
        """Insert *node*, link it to its parent and update totals."""
        if node.id in self.nodes:
            raise ValueError(f"Duplicate summary node id: {node.id}")
        self.nodes[node.id] = node
        self.total_tokens += node.token_count
        if node.parent_id is not None:
            self.nodes[node.parent_id].child_ids.append(node.id)
        else:
            self.root_id = node.id
        if node.level not in self.levels:
            self.levels = [lvl for lvl in SUMMARY_LEVELS if lvl in self.levels or lvl == node.level]

    @property
    def root(self) -> Optional[SummaryNode]:
        return self.nodes.get(self.root_id)

    def children(self, node_id: str) -> List[SummaryNode]:
        """Child nodes of *node_id* in order."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [self.nodes[c] for c in node.child_ids if c in self.nodes]


def next_detailed_level(level: str) -> str:
    """The next more detailed level, saturating at ``detailed``."""
    idx = SUMMARY_LEVELS.index(level)
    return SUMMARY_LEVELS[min(idx + 1, len(SUMMARY_LEVELS) - 1)]


def split_range(message_range: MessageRange, parts: int) -> List[MessageRange]:
    """Split a range into at most *parts* contiguous segments of ``ceil(n / parts)``.

    Args:
        message_range (MessageRange): Range to split.
        parts (int): Desired number of segments.

    Returns:
        List[MessageRange]: Non-empty segments covering the range in order.
    """
    count = message_range.size
    if count <= 0 or parts <= 0:
        return []
    seg = math.ceil(count / parts)
    segments: List[MessageRange] = []
    for i in range(parts):
        start = message_range.start_index + i * seg
        end = min(start + seg, message_range.end_index)
        if start >= end:
            break
        segments.append(MessageRange(start, end))
    return segments


def messages_to_text(messages: List[Message]) -> str:
    """Serialize messages as ``[User]: ...`` / ``[Assistant]: ...`` sections.

    Args:
        messages (List[Message]): Messages to convert.

    Returns:
        str: Double-newline-joined role-prefixed entries.
    """
    parts: List[str] = []
    for msg in messages:
        label = "Assistant" if msg.role == MessageRole.ASSISTANT else "User"
        parts.append(f"[{label}]: {msg.text()}")
    return "\n\n".join(parts)


def _new_node_id() -> str:
    return f"summary_{uuid.uuid4().hex[:12]}"


class HierarchicalSummarizer:
    """Builds and queries multi-level summary trees, one per conversation."""

    def __init__(
        self,
        llm: BaseChatModel,
        config: Optional[SummarizerConfig] = None,
        estimate: Callable[[str], int] = estimate_tokens,
    ) -> None:
        """Initialize the summarizer.

        Args:
            llm (BaseChatModel): Model used to write each summary node.
            config (Optional[SummarizerConfig]): Level targets and split rules.
            estimate (Callable[[str], int]): Token estimator for node text.
        """
        self.llm = llm
        self.config = config or SummarizerConfig()
        self._estimate = estimate
        self._trees: Dict[str, SummaryTree] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Tree lifecycle
    # ------------------------------------------------------------------

    def get_tree(self, task_id: str) -> Optional[SummaryTree]:
        with self._lock:
            return self._trees.get(task_id)

    def can_update_existing(self, tree: SummaryTree, messages: List[Message]) -> bool:
        """Whether only new messages were appended since *tree* was built."""
        root = tree.root
        if root is None:
            return False
        return root.message_range.end_index < len(messages)

    async def create_summary_tree(
        self,
        task_id: str,
        messages: List[Message],
        llm: Optional[BaseChatModel] = None,
        instructions: Optional[str] = None,
    ) -> SummaryTree:
        """Build a tree for *task_id*, or update the existing one.

        Args:
            task_id (str): Conversation identifier.
            messages (List[Message]): Messages to summarize.
            llm (Optional[BaseChatModel]): Model for this build instead of
                ``self.llm``.
            instructions (Optional[str]): Instructions for every level instead
                of the per-level prompts.

        Returns:
            SummaryTree: The published tree.

        Raises:
            ValueError: If *messages* is empty.
        """
        existing = self.get_tree(task_id)
        if existing is not None and self.can_update_existing(existing, messages):
            return await self.update_summary_tree(task_id, messages, llm, instructions)
        return await self.build_new_tree(task_id, messages, llm, instructions)

    async def update_summary_tree(
        self,
        task_id: str,
        messages: List[Message],
        llm: Optional[BaseChatModel] = None,
        instructions: Optional[str] = None,
    ) -> SummaryTree:
        """Refresh the tree after messages were appended.

        The tree is rebuilt in full; the previous tree stays published until
        the rebuild completes.
        """
        return await self.build_new_tree(task_id, messages, llm, instructions)

    async def build_new_tree(
        self,
        task_id: str,
        messages: List[Message],
        llm: Optional[BaseChatModel] = None,
        instructions: Optional[str] = None,
    ) -> SummaryTree:
        """Build a fresh tree and publish it for *task_id*.

        Args:
            task_id (str): Conversation identifier.
            messages (List[Message]): Messages to summarize.
            llm (Optional[BaseChatModel]): Model for this build instead of
                ``self.llm``.
            instructions (Optional[str]): Instructions for every level instead
                of the per-level prompts.

        Returns:
            SummaryTree: The new tree.

        Raises:
            ValueError: If *messages* is empty.
        """
        if not messages:
            raise ValueError("No messages provided")

        tree = SummaryTree()
        root = await self._summarize_segment(
            messages, "minimal", None, MessageRange(0, len(messages)), llm, instructions
        )
        tree.add_node(root)

        parent_ids = [root.id]
        min_split = self.config.min_messages_for_summary * 2
        for level in _BUILD_LEVELS:
            jobs: List[Tuple[str, MessageRange]] = []
            for parent_id in parent_ids:
                parent = tree.nodes[parent_id]
                if parent.message_range.size < min_split:
                    continue
                for segment in split_range(parent.message_range, self.config.build_split):
                    jobs.append((parent_id, segment))
            if not jobs:
                break

            children = await asyncio.gather(
                *(
                    self._summarize_segment(messages, level, pid, seg, llm, instructions)
                    for pid, seg in jobs
                )
            )
            for child in children:
                tree.add_node(child)
            parent_ids = [c.id for c in children]

        with self._lock:
            self._trees[task_id] = tree
        logger.info(
            "Built summary tree for %s: %d node(s), %d token(s)",
            task_id,
            len(tree.nodes),
            tree.total_tokens,
        )
        return tree

    async def expand_node(
        self,
        task_id: str,
        node_id: str,
        messages: List[Message],
    ) -> List[SummaryNode]:
        """Deepen a node by summarizing thirds of its range one level down.

        Returns existing children unchanged when the node already has some.

        Args:
            task_id (str): Conversation identifier.
            node_id (str): Node to expand.
            messages (List[Message]): The conversation the tree was built from.

        Returns:
            List[SummaryNode]: The node's children, empty if the tree or node
                is unknown.
        """
        tree = self.get_tree(task_id)
        if tree is None or node_id not in tree.nodes:
            return []
        node = tree.nodes[node_id]
        if node.child_ids:
            return tree.children(node_id)

        level = next_detailed_level(node.level)
        segments = split_range(node.message_range, self.config.expand_split)
        children = await asyncio.gather(
            *(self._summarize_segment(messages, level, node_id, seg) for seg in segments)
        )
        with self._lock:
            if node.child_ids:
                return tree.children(node_id)
            for child in children:
                tree.add_node(child)
        return list(children)

    def clear(self, task_id: str) -> None:
        """Drop the tree for *task_id*."""
        with self._lock:
            self._trees.pop(task_id, None)

    def clear_all(self) -> None:
        """Drop every tree."""
        with self._lock:
            self._trees.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_summary_for_budget(self, task_id: str, token_budget: int) -> List[str]:
        """Most detailed set of summaries that fits *token_budget*.

        Breadth-first from the root: a node is included when it fits, then
        replaced by its children when they fit in its place.

        Args:
            task_id (str): Conversation identifier.
            token_budget (int): Maximum cumulative tokens.

        Returns:
            List[str]: Summary texts in traversal order.
        """
        tree = self.get_tree(task_id)
        if tree is None:
            return []

        summaries: List[str] = []
        tokens_used = 0
        queue: List[str] = [tree.root_id]
        visited = set()

        while queue and tokens_used < token_budget:
            node_id = queue.pop(0)
            if node_id in visited:
                continue
            visited.add(node_id)
            node = tree.nodes.get(node_id)
            if node is None or tokens_used + node.token_count > token_budget:
                continue

            summaries.append(node.content)
            tokens_used += node.token_count

            if node.child_ids:
                child_tokens = sum(
                    tree.nodes[c].token_count for c in node.child_ids if c in tree.nodes
                )
                if tokens_used - node.token_count + child_tokens <= token_budget:
                    summaries.pop()
                    tokens_used -= node.token_count
                    queue.extend(node.child_ids)

        return summaries

    def get_summary_at_level(self, task_id: str, level: str) -> Optional[str]:
        """Concatenate every node at *level* in message order.

        Returns:
            Optional[str]: Joined summaries, or ``None`` when absent.
        """
        tree = self.get_tree(task_id)
        if tree is None:
            return None
        nodes = sorted(
            (n for n in tree.nodes.values() if n.level == level),
            key=lambda n: n.message_range.start_index,
        )
        if not nodes:
            return None
        return LEVEL_SEPARATOR.join(n.content for n in nodes)

    def get_stats(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Node counts per level and token totals for *task_id*."""
        tree = self.get_tree(task_id)
        if tree is None:
            return None
        by_level = {lvl: 0 for lvl in SUMMARY_LEVELS}
        for node in tree.nodes.values():
            by_level[node.level] += 1
        return {
            "levels": len(tree.levels),
            "total_nodes": len(tree.nodes),
            "total_tokens": tree.total_tokens,
            "nodes_by_level": by_level,
            "max_messages_per_node": self.config.max_messages_per_node,
        }

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    async def _summarize_segment(
        self,
        messages: List[Message],
        level: str,
        parent_id: Optional[str],
        message_range: MessageRange,
        llm: Optional[BaseChatModel] = None,
        instructions: Optional[str] = None,
    ) -> SummaryNode:
        """Summarize one message range into a detached node."""
        if instructions is None:
            prompts = self.config.custom_prompts or {}
            instructions = prompts.get(level, SUMMARY_LEVEL_PROMPTS[level])
        target = self.config.level_token_targets[level]
        conversation = messages_to_text(
            messages[message_range.start_index : message_range.end_index]
        )

        content, usage = await self._generate_summary(conversation, instructions, target, llm)
        return SummaryNode(
            id=_new_node_id(),
            level=level,
            content=content,
            token_count=self._estimate(content),
            parent_id=parent_id,
            message_range=message_range,
            metadata=usage,
        )

    async def _generate_summary(
        self,
        conversation: str,
        instructions: str,
        target_tokens: int,
        llm: Optional[BaseChatModel] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """Ask *llm* (default ``self.llm``) for a summary; fall back to an excerpt on failure.

        Returns:
            Tuple[str, Dict[str, Any]]: Summary text and token usage.
        """
        excerpt = conversation[: target_tokens * 4]
        prompt = SEGMENT_PROMPT.format(
            instructions=instructions,
            target_tokens=target_tokens,
            conversation=conversation,
        )
        try:
            model = llm if llm is not None else self.llm
            response = await model.ainvoke([HumanMessage(content=prompt)])
        except Exception as e:
            logger.warning("Segment summarization failed, using excerpt: %s", e)
            return excerpt, {}

        text = response.content if isinstance(response.content, str) else str(response.content)
        usage = getattr(response, "usage_metadata", None)
        if not isinstance(usage, dict):
            usage = {}
        usage = {
            "input_tokens": int(usage.get("input_tokens", 0) or 0),
            "output_tokens": int(usage.get("output_tokens", 0) or 0),
        }
        return (text or excerpt), usage
