"""Shared constants: single source of truth for cross-module values.

The numeric scoring weights and verification thresholds below are tuned
together; changing one shifts the ranking and calibration behaviour of
every other stage.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class ChunkType(StrEnum):
    """Kinds of top-level declarations the chunk extractor emits."""

    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    CONST = "const"


class ImportKind(StrEnum):
    """How a module reference was written in source."""

    IMPORT = "import"
    REQUIRE = "require"
    DYNAMIC = "dynamic"


class ClaimKind(StrEnum):
    """Categories of LLM claims checked by verification."""

    FILE = "file"
    CODE_CITATION = "code_citation"
    LINE_REFERENCE = "line_reference"
    SYMBOL = "symbol"


class ClaimSeverity(StrEnum):
    """Severity attached to a verification claim."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class CitationMatch(StrEnum):
    """How a code citation was located in the context."""

    EXACT = "exact"
    NORMALIZED = "normalized"
    PARTIAL = "partial"
    NONE = "none"


class FileRole(StrEnum):
    """Architectural role inferred from a file path."""

    COMPONENT = "component"
    HOOK = "hook"
    API = "api"
    SCHEMA = "schema"
    UTIL = "util"
    CONFIG = "config"
    TEST = "test"
    ANALYTICS = "analytics"
    STYLE = "style"
    UNKNOWN = "unknown"


class ContextPolicy(StrEnum):
    """Context assembly strategy."""

    FLAT = "flat"
    CHUNKED = "chunked"
    AUTO = "auto"


class StageOutcome(StrEnum):
    """Outcome of an individual pipeline stage execution."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# ── File Ranking ─────────────────────────────────────────

PATH_KEYWORD_SCORE = 15
TEST_FILE_PENALTY = 10
STACKTRACE_FILE_SCORE = 50
STACKTRACE_FUNCTION_BONUS = 20
FUNCTION_NAME_SCORE = 25
ERROR_MESSAGE_SCORE = 15
KEYWORD_OCCURRENCE_SCORE = 5
KEYWORD_OCCURRENCE_CAP = 20
CONTENT_SCORE_WEIGHT = 2
MAX_IDENTIFIER_KEYWORDS = 15

# ── Import Graph ─────────────────────────────────────────

IMPORTED_SCORE_RATIO = 0.6

# ── Chunk Relevance ──────────────────────────────────────

CHUNK_LOCATION_SCORE = 100
CHUNK_FUNCTION_SCORE = 50
CHUNK_KEYWORD_SCORE = 10
CHUNK_EXPORT_BONUS = 5
MAX_CHUNKS_PER_FILE = 5

# ── Context Assembly ─────────────────────────────────────

CONTEXT_SEPARATOR = "\n\n"
LINE_CONTEXT_RADIUS = 20
LINE_CONTEXT_MAX_CHARS = 6000
HIGH_SCORE_FILE_CHARS = 4000
LOW_SCORE_FILE_CHARS = 3000
HIGH_SCORE_THRESHOLD = 50
FLAT_MAX_FILES = 15
CHUNKED_MAX_FILES = 10
CHUNKED_MIN_USEFUL_CHARS = 500

# ── Verification ─────────────────────────────────────────

CRITICAL_PENALTY = 25
WARNING_PENALTY = 10
INLINE_CITATION_MIN_CHARS = 10
BLOCK_CITATION_MIN_CHARS = 20
PARTIAL_MATCH_RATIO = 0.85
LINE_TOKEN_MATCH_RATIO = 0.5
LINE_WINDOW_MIN_MATCHES = 3
MAX_SYMBOL_CHECKS = 10
HALLUCINATION_CONFIDENCE_CAP = 30
HALLUCINATION_WARNING_CAP = 30

# ── Confidence Calibration ──────────────────────────────

NO_FILES_CAP = 40
NO_LINE_MATCH_PENALTY = 20
ROLE_MISMATCH_PENALTY = 25
UNCERTAINTY_CAP = 60
WEAK_EVIDENCE_PENALTY = 15
MIN_EVIDENCE_CHARS = 50
COUNTER_EVIDENCE_PENALTY = 15
ASSUMPTIONS_PENALTY = 10
WEAK_JUSTIFICATION_CAP = 65
ALTERNATIVES_BONUS = 5
ALTERNATIVES_CEILING = 95
NO_SELF_VALIDATION_CAP = 70
GENERIC_ANSWER_CAP = 50

# ── LLM Rerank ───────────────────────────────────────────

CB_LLM_FAILURE_THRESHOLD = 5
CB_LLM_RECOVERY_TIMEOUT = 30
RERANK_MAX_OUTPUT_TOKENS = 1000
RERANK_TEMPERATURE = 0.1
RERANK_MIN_FILES = 5
RERANK_MIN_CANDIDATES = 3
RERANK_MIN_SUMMARY_CHARS = 50
RERANK_SCORE_SCALE = 2
RERANK_LLM_WEIGHT = 0.7
RERANK_BODY_CHARS = 1500
FILE_SUMMARY_MAX_CHARS = 800
