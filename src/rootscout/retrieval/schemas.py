"""Pydantic models for the retrieval data flow."""

from __future__ import annotations

from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from rootscout.constants import ImportKind


class FileCandidate(BaseModel):
    """A source file scored for relevance to a bug report.

    ``relevance_score`` equals ``path_score`` until the content stage
    runs, after which it is ``path_score + 2 * content_score``.
    """

    path: str
    size: int = 0
    path_score: int = 0
    content_score: int = 0
    relevance_score: int = 0
    matched_keywords: list[str] = Field(
        default_factory=lambda: list[str]()
    )


class ImportEdge(BaseModel):
    """A module reference parsed out of a source file."""

    model_config = ConfigDict(frozen=True)

    source: str  # the specifier as written
    from_file: str | None = None
    resolved: str | None = None
    is_relative: bool = False
    kind: ImportKind = ImportKind.IMPORT


ImportGraph: TypeAlias = dict[str, list[str]]
