"""Chunk extraction: top-level declarations and their relevance."""

from rootscout.chunking.chunker import (
    extract_chunks,
    extract_chunks_with_parser,
    extract_code_chunks,
    extract_code_chunks_async,
)
from rootscout.chunking.parser import (
    ParserOutcome,
    ParserProbe,
    get_parser_probe,
)
from rootscout.chunking.relevance import (
    get_relevant_chunks,
    rank_chunks,
    score_chunk,
)
from rootscout.chunking.schemas import CodeChunk

__all__ = [
    "CodeChunk",
    "ParserOutcome",
    "ParserProbe",
    "extract_chunks",
    "extract_chunks_with_parser",
    "extract_code_chunks",
    "extract_code_chunks_async",
    "get_parser_probe",
    "get_relevant_chunks",
    "rank_chunks",
    "score_chunk",
]
