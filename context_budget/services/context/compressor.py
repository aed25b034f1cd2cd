# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Semantic compression.

Lossy shrinking of free text at three strengths while protecting code,
URLs and file paths:

  light       normalise whitespace outside protected spans, drop filler phrases
  moderate    light, then drop a fixed share of stopwords (deterministic)
  aggressive  keep the highest-scoring ~40 % of sentences in original order

Results are cached per ``(content id, level)``.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from context_budget.services.context.cache import LRUCache
from context_budget.services.context.settings import CompressorConfig
from context_budget.services.context.tokens import estimate_tokens

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
URL_RE = re.compile(r"https?://[^\s)]+")
FILE_PATH_RE = re.compile(r"(?:/[\w.-]+)+(?:\.\w+)?")
FUNCTION_CALL_RE = re.compile(r"\b\w+\([^)]*\)")
CLASS_NAME_RE = re.compile(r"\b[A-Z][a-zA-Z0-9]*\b")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
WHITESPACE_RE = re.compile(r"\s+")

FILLER_PHRASES = (
    re.compile(r"\b(?:I think |I believe |It seems |In my opinion )", re.IGNORECASE),
    re.compile(r"\b(?:basically |essentially |actually |literally )", re.IGNORECASE),
    re.compile(r"\b(?:kind of |sort of |more or less )", re.IGNORECASE),
)

STOPWORDS = frozenset(
    """
    the a an and or but in on at to for of with by from as is was are were been be
    have has had do does did will would could should may might must shall can need
    that this these those it its they them their we us our you your he she him her
    his very really just also even still already always
    """.split()
)

IMPORTANT_KEYWORDS = (
    "error", "fix", "bug", "issue", "problem", "create", "modify", "delete",
    "update", "change", "function", "class", "method", "file", "module",
    "important", "note", "warning", "todo", "fixme",
)

_PLACEHOLDER = "\x00P{}\x00"


@dataclass
class PreservedElements:
    """Spans protected from compression.

    Attributes:
        code_blocks (List[str]): Fenced code blocks.
        inline_code (List[str]): Inline code spans.
        urls (List[str]): http(s) URLs.
        file_paths (List[str]): Path-like substrings.
    """

    code_blocks: List[str] = field(default_factory=list)
    inline_code: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    file_paths: List[str] = field(default_factory=list)

    @property
    def all(self) -> List[str]:
        """Every preserved span, de-duplicated, longest first."""
        seen = dict.fromkeys(self.code_blocks + self.inline_code + self.urls + self.file_paths)
        return sorted(seen, key=len, reverse=True)


@dataclass(frozen=True)
class CompressedContent:
    """A compression result.

    Attributes:
        id (str): Content id used for caching.
        original_content (str): Input text.
        compressed_content (str): Output text.
        compression_level (str): Level applied.
        original_tokens (int): Estimated tokens of the input.
        compressed_tokens (int): Estimated tokens of the output.
        compression_ratio (float): ``compressed_tokens / original_tokens``.
        preserved_elements (Tuple[str, ...]): Protected spans.
        removed_elements (Tuple[str, ...]): Dropped fragments.
    """

    id: str
    original_content: str
    compressed_content: str
    compression_level: str
    original_tokens: int
    compressed_tokens: int
    compression_ratio: float
    preserved_elements: Tuple[str, ...] = ()
    removed_elements: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


def extract_preserved_elements(text: str, config: CompressorConfig) -> PreservedElements:
    """Locate spans that compression must not alter."""
    code_blocks = CODE_BLOCK_RE.findall(text) if config.preserve_code_blocks else []
    without_blocks = CODE_BLOCK_RE.sub(" ", text)
    inline = INLINE_CODE_RE.findall(without_blocks) if config.preserve_code_blocks else []
    urls = URL_RE.findall(text) if config.preserve_urls else []
    without_urls = URL_RE.sub(" ", without_blocks)
    paths = FILE_PATH_RE.findall(without_urls) if config.preserve_file_paths else []
    return PreservedElements(code_blocks, inline, urls, paths)


def protect(text: str, spans: Sequence[str]) -> Tuple[str, Dict[str, str]]:
    """Replace each span with an opaque placeholder."""
    mapping: Dict[str, str] = {}
    for i, span in enumerate(spans):
        if span not in text:
            continue
        placeholder = _PLACEHOLDER.format(i)
        mapping[placeholder] = span
        text = text.replace(span, placeholder)
    return text, mapping


def restore(text: str, mapping: Dict[str, str]) -> str:
    """Inverse of ``protect``."""
    for placeholder, span in mapping.items():
        text = text.replace(placeholder, span)
    return text


def remove_filler(text: str, removed: List[str]) -> str:
    """Collapse whitespace and strip filler phrases."""
    result = WHITESPACE_RE.sub(" ", text)
    for pattern in FILLER_PHRASES:
        removed.extend(m.group(0) for m in pattern.finditer(result))
        result = pattern.sub("", result)
    return result.strip()


def drop_stopwords(words: Sequence[str], ratio: float, removed: List[str]) -> List[str]:
    """Drop an evenly spaced *ratio* of stopword occurrences.

    The k-th stopword (0-based) is dropped when ``floor((k + 1) * ratio)``
    exceeds ``floor(k * ratio)``, so with ratio 0.5 every second stopword
    goes. Deterministic for a given input.
    """
    kept: List[str] = []
    seen = 0
    for word in words:
        bare = re.sub(r"[^a-z]", "", word.lower())
        if bare in STOPWORDS:
            drop = math.floor((seen + 1) * ratio) > math.floor(seen * ratio)
            seen += 1
            if drop:
                removed.append(word)
                continue
        kept.append(word)
    return kept


def split_sentences(text: str) -> List[str]:
    """Non-empty sentences split on ``.``, ``!`` and ``?``."""
    return [s.strip() for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]


def score_sentence(sentence: str, preserved: Iterable[str]) -> int:
    """Importance of a sentence for aggressive compression."""
    score = sum(5 for span in preserved if span and span in sentence)
    lowered = sentence.lower()
    score += sum(2 for kw in IMPORTANT_KEYWORDS if kw in lowered)
    if FUNCTION_CALL_RE.search(sentence):
        score += 3
    if CLASS_NAME_RE.search(sentence):
        score += 2
    return score


def sentences_to_keep(count: int, keep_ratio: float = 0.4, minimum: int = 2) -> int:
    """``max(minimum, ceil(count * keep_ratio))``, never more than *count*."""
    return min(count, max(minimum, math.ceil(count * keep_ratio)))


def level_for_ratio(original_tokens: int, target_tokens: int) -> str:
    """Pick the gentlest level expected to reach *target_tokens*."""
    if target_tokens >= original_tokens:
        return "none"
    ratio = target_tokens / original_tokens
    if ratio >= 0.8:
        return "light"
    if ratio >= 0.5:
        return "moderate"
    return "aggressive"


def make_content_id(text: str) -> str:
    """Stable id derived from the text."""
    return "comp_" + hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


class SemanticCompressor:
    """Compresses text while preserving code, URLs and paths."""

    def __init__(
        self,
        config: Optional[CompressorConfig] = None,
        cache_max_entries: int = 1_000,
    ) -> None:
        self.config = config or CompressorConfig()
        self._cache: LRUCache[CompressedContent] = LRUCache(max_entries=cache_max_entries)

    def compress(
        self,
        content: str,
        level: str = "moderate",
        content_id: Optional[str] = None,
    ) -> CompressedContent:
        """Compress *content* at *level*.

        Args:
            content (str): Text to compress.
            level (str): ``none``, ``light``, ``moderate`` or ``aggressive``.
            content_id (Optional[str]): Cache id; derived from the content if omitted.

        Returns:
            CompressedContent: The result, possibly from the cache.

        Raises:
            ValueError: If *level* is unknown.
        """
        if level not in self.config.target_ratios:
            raise ValueError(f"Unknown compression level: {level}")

        cid = content_id or make_content_id(content)
        key = f"{cid}:{level}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if level == "none" or len(content) < self.config.min_content_length:
            return self._result(cid, content, content, level, [], [])

        preserved = extract_preserved_elements(content, self.config)
        removed: List[str] = []
        if level == "light":
            compressed = self._light(content, preserved, removed)
        elif level == "moderate":
            compressed = self._moderate(content, preserved, removed)
        else:
            compressed = self._aggressive(content, preserved, removed)

        result = self._result(cid, content, compressed, level, preserved.all, removed)
        self._cache.set(key, result)
        logger.debug(
            "Compressed %s at %s: %d -> %d tokens",
            cid,
            level,
            result.original_tokens,
            result.compressed_tokens,
        )
        return result

    def batch_compress(
        self,
        contents: Sequence[Tuple[str, Optional[str]]],
        level: str = "moderate",
    ) -> List[CompressedContent]:
        """Compress ``(content, content_id)`` pairs at one level."""
        return [self.compress(text, level, cid) for text, cid in contents]

    def decompress(self, content_id: str) -> Optional[str]:
        """Original text for a cached id, if still cached."""
        prefix = f"{content_id}:"
        for key, result in self._cache.items():
            if key.startswith(prefix):
                return result.original_content
        return None

    def get_optimal_level(self, content: str, target_tokens: int) -> str:
        """Level expected to bring *content* within *target_tokens*."""
        return level_for_ratio(estimate_tokens(content), target_tokens)

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, float]:
        """Cache size and aggregate compression ratio."""
        results = self._cache.values()
        original = sum(r.original_tokens for r in results)
        compressed = sum(r.compressed_tokens for r in results)
        return {
            "size": len(results),
            "avg_compression_ratio": compressed / original if original else 1.0,
            "total_original_tokens": original,
            "total_compressed_tokens": compressed,
        }

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def _light(self, content: str, preserved: PreservedElements, removed: List[str]) -> str:
        protected, mapping = protect(content, preserved.all)
        return restore(remove_filler(protected, removed), mapping)

    def _moderate(self, content: str, preserved: PreservedElements, removed: List[str]) -> str:
        protected, mapping = protect(content, preserved.all)
        text = remove_filler(protected, removed)
        words = drop_stopwords(text.split(" "), self.config.stopword_drop_ratio, removed)
        return restore(" ".join(w for w in words if w), mapping).strip()

    def _aggressive(self, content: str, preserved: PreservedElements, removed: List[str]) -> str:
        protected, mapping = protect(content, preserved.all)
        sentences = [restore(s, mapping) for s in split_sentences(protected)]
        if len(sentences) <= self.config.aggressive_min_sentences:
            return self._moderate(content, preserved, removed)

        spans = preserved.all
        ranked = sorted(
            range(len(sentences)),
            key=lambda i: score_sentence(sentences[i], spans),
            reverse=True,
        )
        keep = sentences_to_keep(
            len(sentences),
            self.config.aggressive_keep_ratio,
            self.config.aggressive_min_sentences,
        )
        kept = sorted(ranked[:keep])
        removed.extend(sentences[i] for i in sorted(ranked[keep:]))
        return ". ".join(sentences[i] for i in kept) + "."

    def _result(
        self,
        cid: str,
        original: str,
        compressed: str,
        level: str,
        preserved: Sequence[str],
        removed: Sequence[str],
    ) -> CompressedContent:
        original_tokens = estimate_tokens(original)
        compressed_tokens = estimate_tokens(compressed)
        kept_spans = set(preserved)
        return CompressedContent(
            id=cid,
            original_content=original,
            compressed_content=compressed,
            compression_level=level,
            original_tokens=original_tokens,
            compressed_tokens=compressed_tokens,
            compression_ratio=compressed_tokens / original_tokens if original_tokens else 1.0,
            preserved_elements=tuple(preserved),
            removed_elements=tuple(r for r in removed if r not in kept_spans),
        )
