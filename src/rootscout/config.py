"""Environment-based configuration and retrieval defaults."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from rootscout.constants import ContextPolicy

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".py",
    ".go",
    ".rs",
    ".java",
    ".kt",
)

DEFAULT_IGNORE_DIRECTORIES: tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    "coverage",
    "__pycache__",
    "vendor",
)

# Extensions tried by the import resolver, in order.
RESOLVE_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
)

# File extension → fenced code block language in assembled context
FENCE_LANGUAGES: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "jsx",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
}

# Grammar used by the chunk extractor: (module, language factory).
# The TSX dialect parses plain JavaScript and TypeScript as well.
CHUNK_GRAMMAR: tuple[str, str] = ("tree_sitter_typescript", "language_tsx")


class Settings(BaseSettings):
    """Reads from .env file and ROOTSCOUT_* environment variables."""

    # File ranking
    source_extensions: Annotated[list[str], NoDecode] = list(
        DEFAULT_SOURCE_EXTENSIONS
    )
    ignore_directories: Annotated[list[str], NoDecode] = list(
        DEFAULT_IGNORE_DIRECTORIES
    )
    max_scan_files: int = 200
    max_output_files: int = 25
    content_scan_top_n: int = 50
    max_walk_depth: int = 6
    max_content_read_bytes: int = 50_000
    respect_gitignore: bool = True

    # Import graph
    import_graph_max_files: int = 20
    import_expansion_max: int = 10

    # Context assembly
    context_max_chars: int = 60_000
    context_policy: ContextPolicy = ContextPolicy.AUTO

    # LLM rerank (optional external step)
    rerank_enabled: bool = False
    rerank_model: str = "anthropic/claude-3-haiku-20240307"
    rerank_timeout_seconds: int = 30
    rerank_max_candidates: int = 15

    # Logging
    log_level: str = "INFO"

    @field_validator(
        "source_extensions", "ignore_directories", mode="before"
    )
    @classmethod
    def _parse_list(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("source_extensions")
    @classmethod
    def _normalize_extensions(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError(
                "source_extensions must contain at least one extension"
            )
        normalized = [e if e.startswith(".") else f".{e}" for e in v]
        if normalized != v:
            logger.warning(
                "Extensions without leading dot normalized: %s",
                ", ".join(e for e in v if not e.startswith(".")),
            )
        return normalized

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "ROOTSCOUT_",
        "extra": "ignore",
    }
