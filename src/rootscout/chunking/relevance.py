"""Score a file's chunks against a bug report's signals."""

from __future__ import annotations

import logging

from rootscout.chunking.chunker import extract_chunks
from rootscout.chunking.parser import ParserProbe
from rootscout.chunking.schemas import CodeChunk
from rootscout.constants import (
    CHUNK_EXPORT_BONUS,
    CHUNK_FUNCTION_SCORE,
    CHUNK_KEYWORD_SCORE,
    CHUNK_LOCATION_SCORE,
    MAX_CHUNKS_PER_FILE,
)
from rootscout.signals.schemas import SignalSet

logger = logging.getLogger(__name__)


def score_chunk(chunk: CodeChunk, signals: SignalSet) -> int:
    """Heuristic relevance of one chunk.

    +100 per error line inside the chunk, +50 per stack-trace function
    name contained in the chunk name, +10 per keyword found in the name
    or signature, +5 for exported declarations.
    """
    score = 0
    name_lower = chunk.name.lower()
    for loc in signals.error_locations:
        if loc.line and chunk.start_line <= loc.line <= chunk.end_line:
            score += CHUNK_LOCATION_SCORE
        if loc.function_name and loc.function_name.lower() in name_lower:
            score += CHUNK_FUNCTION_SCORE

    haystack = f"{chunk.name} {chunk.signature}".lower()
    for keyword in signals.keywords:
        if len(keyword) > 2 and keyword.lower() in haystack:
            score += CHUNK_KEYWORD_SCORE

    if chunk.signature.startswith("export"):
        score += CHUNK_EXPORT_BONUS
    return score


def rank_chunks(
    chunks: list[CodeChunk],
    signals: SignalSet,
    max_chunks: int = MAX_CHUNKS_PER_FILE,
) -> list[CodeChunk]:
    """Drop zero-score chunks and order the rest, best first.

    Ties keep source order.
    """
    scored = [(score_chunk(c, signals), c) for c in chunks]
    kept = [pair for pair in scored if pair[0] > 0]
    kept.sort(key=lambda pair: pair[0], reverse=True)
    return [c for _, c in kept[:max_chunks]]


def get_relevant_chunks(
    file_path: str,
    signals: SignalSet,
    max_chunks: int = MAX_CHUNKS_PER_FILE,
    probe: ParserProbe | None = None,
) -> list[CodeChunk]:
    """Best-scoring chunks of ``file_path``; [] if it cannot be read."""
    try:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            content = f.read()
    except OSError as exc:
        logger.debug(
            "event=chunk_read_skipped path=%s error=%s", file_path, exc
        )
        return []
    return rank_chunks(extract_chunks(content, probe), signals, max_chunks)
