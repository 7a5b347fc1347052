"""Result types and Reciprocal Rank Fusion for hybrid search.

This module provides the data structures shared by the lexical and vector
executors and the rank fusion that merges their output.

Key Features:
- ScoredResult dataclass for a ranked document from any source
- FusionEntry accumulating per-source contributions for one document
- Reciprocal Rank Fusion (RRF) with a deterministic total order

Usage:
    from fusionsearch.lib.hybrid_search import reciprocal_rank_fusion

    fused = reciprocal_rank_fusion(lexical_results, vector_results, k=60)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_RRF_K = 60


@dataclass
class ScoredResult:
    """A document returned by a search, with its position and scores.

    ``native_score`` comes from the engine that produced the list (BM25 for
    lexical, similarity for knn) and is not comparable across sources.
    ``fused_score`` is only set once the result has been through fusion.

    Attributes:
        id: Document identifier
        fields: Requested document fields
        rank: 1-based position within the list holding this result
        native_score: Source-specific relevance score
        fused_score: RRF score, None before fusion
        lexical_rank: Rank in the lexical list, when present there
        vector_rank: Rank in the vector list, when present there
        lexical_score: Native lexical score, when present there
        vector_score: Native vector score, when present there
        highlights: Highlighted fragments per field
    """

    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    rank: int = 0
    native_score: float = 0.0
    fused_score: float | None = None
    lexical_rank: int | None = None
    vector_rank: int | None = None
    lexical_score: float | None = None
    vector_score: float | None = None
    highlights: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten the result into a JSON-serializable mapping."""
        data: dict[str, Any] = dict(self.fields)
        data["id"] = self.id
        data["rank"] = self.rank
        data["score"] = self.native_score
        if self.fused_score is not None:
            data["fused_score"] = self.fused_score
        for name in ("lexical_rank", "vector_rank", "lexical_score", "vector_score"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.highlights:
            data["highlights"] = self.highlights
        return data

    def format(self, content_field: str = "content", width: int = 200) -> str:
        """Format the result for terminal output.

        Example:
            >>> result.format()
            '#1 doc-42 (fused 0.0325)\\n  Solar panels convert...'
        """
        score = (
            f"fused {self.fused_score:.4f}"
            if self.fused_score is not None
            else f"score {self.native_score:.4f}"
        )
        header = f"#{self.rank} {self.id} ({score})"
        content = self.fields.get(content_field)
        if not content:
            return header
        text = str(content).replace("\n", " ")
        if len(text) > width:
            text = text[: width - 3] + "..."
        return f"{header}\n  {text}"


@dataclass
class FusionEntry:
    """Accumulates the lexical and vector contributions for one document."""

    id: str
    lexical: ScoredResult | None = None
    lexical_rank: int | None = None
    vector: ScoredResult | None = None
    vector_rank: int | None = None

    def fused_score(self, k: int) -> float:
        """Sum of ``1 / (k + rank)`` over the lists containing this document."""
        score = 0.0
        if self.lexical_rank is not None:
            score += 1.0 / (k + self.lexical_rank)
        if self.vector_rank is not None:
            score += 1.0 / (k + self.vector_rank)
        return score

    def sort_key(self, k: int) -> tuple[float, float, str]:
        """Fused score descending, then lexical rank, then id."""
        lexical_rank = self.lexical_rank if self.lexical_rank is not None else math.inf
        return (-self.fused_score(k), lexical_rank, self.id)

    def to_result(self, rank: int, k: int) -> ScoredResult:
        """Build the fused ScoredResult.

        Vector fields take precedence over lexical fields with the same
        name; highlights only ever come from the lexical side.
        """
        fields: dict[str, Any] = {}
        highlights: dict[str, list[str]] = {}
        native_score = 0.0
        if self.lexical is not None:
            fields.update(self.lexical.fields)
            highlights = self.lexical.highlights
            native_score = self.lexical.native_score
        if self.vector is not None:
            fields.update(self.vector.fields)
            if self.lexical is None:
                native_score = self.vector.native_score

        return ScoredResult(
            id=self.id,
            fields=fields,
            rank=rank,
            native_score=native_score,
            fused_score=self.fused_score(k),
            lexical_rank=self.lexical_rank,
            vector_rank=self.vector_rank,
            lexical_score=self.lexical.native_score if self.lexical else None,
            vector_score=self.vector.native_score if self.vector else None,
            highlights=highlights,
        )


def deduplicate(results: Sequence[ScoredResult], source: str) -> list[ScoredResult]:
    """Drop repeated ids from a ranked list, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[ScoredResult] = []
    for result in results:
        if result.id in seen:
            logger.warning(
                f"Duplicate id '{result.id}' in {source} results, keeping first"
            )
            continue
        seen.add(result.id)
        unique.append(result)
    return unique


def reciprocal_rank_fusion(
    lexical: Sequence[ScoredResult],
    vector: Sequence[ScoredResult],
    k: int = DEFAULT_RRF_K,
) -> list[ScoredResult]:
    """Merge a lexical and a vector ranking with Reciprocal Rank Fusion.

    Each document's fused score only depends on its ranks:
        score(d) = Σ 1 / (k + rank_i(d))
    summed over the lists that contain d. Ranks are 1-based positions after
    removing duplicate ids. Native scores never enter the formula because
    BM25 and vector similarity are not on a common scale.

    Ties are broken by the better lexical rank (documents absent from the
    lexical list last), then by id, so the output order is total.

    Args:
        lexical: Lexical results, best first
        vector: Vector results, best first
        k: RRF constant (default 60). Higher values flatten the difference
            between top and lower ranks.

    Returns:
        Every distinct document, sorted by fused score descending, with
        ``rank`` set to its fused position and ``fused_score`` populated.

    Raises:
        ValueError: If k is not a positive integer

    Example:
        >>> lexical = [ScoredResult("A"), ScoredResult("B"), ScoredResult("C")]
        >>> vector = [ScoredResult("C"), ScoredResult("A"), ScoredResult("D")]
        >>> [r.id for r in reciprocal_rank_fusion(lexical, vector)]
        ['A', 'C', 'B', 'D']
    """
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise ValueError(f"RRF k must be a positive integer, got {k!r}")

    entries: dict[str, FusionEntry] = {}
    for rank, result in enumerate(deduplicate(lexical, "lexical"), start=1):
        entries[result.id] = FusionEntry(result.id, lexical=result, lexical_rank=rank)
    for rank, result in enumerate(deduplicate(vector, "vector"), start=1):
        entry = entries.setdefault(result.id, FusionEntry(result.id))
        entry.vector = result
        entry.vector_rank = rank

    ordered = sorted(entries.values(), key=lambda entry: entry.sort_key(k))
    return [entry.to_result(rank, k) for rank, entry in enumerate(ordered, start=1)]
