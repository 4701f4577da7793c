"""The memory_search tool: hybrid vector and full-text search over memory chunks.

The store provides ``search_vector(vector, limit)`` and ``search_fts(query,
limit)``, each returning results with a ``chunk`` and a ``score``; chunks
carry ``id``, ``path``, ``start_line``, ``end_line`` and ``text``. The
embedding client provides ``embed(texts)`` returning one vector per text.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Optional

from miclaw.tools.tool import JSONSchema, Tool, ToolCall, ToolResult, parse_object

MEMORY_SEARCH_DEFAULT_LIMIT = 6
MEMORY_SEARCH_DEFAULT_MIN_SCORE = 0.35
MEMORY_SEARCH_VECTOR_WEIGHT = 0.7
MEMORY_SEARCH_FTS_WEIGHT = 0.3


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk with its combined search score."""

    chunk: Any
    score: float


def normalize_memory_scores(results: list[Any]) -> dict[str, float]:
    """Scores divided by the highest score, keyed by chunk id; empty if the top is 0."""
    max_score = max((r.score for r in results if r.score > 0), default=0.0)
    if max_score == 0:
        return {}
    return {r.chunk.id: r.score / max_score for r in results}


def merge_memory_search_results(
    vector_results: list[Any],
    fts_results: list[Any],
    min_score: float,
    limit: int,
) -> list[ScoredChunk]:
    """Weight and combine both result sets, best first, ties by chunk id."""
    vector_scores = normalize_memory_scores(vector_results)
    fts_scores = normalize_memory_scores(fts_results)
    by_id = {r.chunk.id: r.chunk for r in [*vector_results, *fts_results]}
    scored = []
    for chunk_id, chunk in by_id.items():
        score = (
            MEMORY_SEARCH_VECTOR_WEIGHT * vector_scores.get(chunk_id, 0.0)
            + MEMORY_SEARCH_FTS_WEIGHT * fts_scores.get(chunk_id, 0.0)
        )
        if score >= min_score:
            scored.append(ScoredChunk(chunk, score))
    scored.sort(key=lambda s: (-s.score, s.chunk.id))
    return scored[:limit]


def format_memory_search_result(scored: list[ScoredChunk]) -> str:
    """One ``[path:start-end] (score: S)`` header and text block per result."""
    return "".join(
        f"[{s.chunk.path}:{s.chunk.start_line}-{s.chunk.end_line}] "
        f"(score: {s.score:.2f})\n{s.chunk.text}\n"
        for s in scored
    )


def _parse_search_params(raw: Any) -> tuple[str, int, float]:
    data = parse_object(raw)
    query = data.get("query")
    if query is not None and not isinstance(query, str):
        raise ValueError("query must be a string")
    limit = data.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int)):
        raise ValueError("limit must be an integer")
    min_score = data.get("min_score")
    if min_score is not None and (
        isinstance(min_score, bool) or not isinstance(min_score, (int, float))
    ):
        raise ValueError("min_score must be a number")
    if query is None or not query.strip():
        raise ValueError("query is required")
    if limit is None or limit <= 0:
        limit = MEMORY_SEARCH_DEFAULT_LIMIT
    if min_score is None:
        min_score = MEMORY_SEARCH_DEFAULT_MIN_SCORE
    return query.strip(), limit, float(min_score)


def memory_search_tool(store: Any, embed_client: Any) -> Tool:
    """A tool that searches memory; store and embedding failures become error results."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            query, limit, min_score = _parse_search_params(call.parameters)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)
        try:
            vectors = embed_client.embed([query])
            if len(vectors) != 1:
                return ToolResult(content="embedding count mismatch", is_error=True)
            vector_results = store.search_vector(vectors[0], limit * 2)
            fts_results = store.search_fts(query, limit * 2)
        except Exception as exc:
            return ToolResult(content=str(exc), is_error=True)
        scored = merge_memory_search_results(vector_results, fts_results, min_score, limit)
        return ToolResult(content=format_memory_search_result(scored))

    return Tool(
        name="memory_search",
        description="Search memory chunks with hybrid vector and full-text scoring",
        parameters=JSONSchema(
            type="object",
            required=["query"],
            properties={
                "query": JSONSchema(type="string", description="Search query"),
                "limit": JSONSchema(
                    type="integer", description="Maximum number of results (default: 6)"
                ),
                "min_score": JSONSchema(
                    type="number", description="Minimum score threshold (default: 0.35)"
                ),
            },
        ),
        run_fn=run,
    )