"""Pydantic models for code chunks."""

from pydantic import BaseModel, ConfigDict

from rootscout.constants import ChunkType


class CodeChunk(BaseModel):
    """A named top-level declaration sliced out of a source file.

    Line numbers are 1-indexed and inclusive.
    """

    model_config = ConfigDict(frozen=True)

    type: ChunkType
    name: str
    start_line: int
    end_line: int
    content: str
    signature: str
