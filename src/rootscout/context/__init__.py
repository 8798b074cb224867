"""Context assembly: bounded code context for the analysis prompt."""

from rootscout.context.assembler import (
    assemble_context,
    build_chunked_context,
    build_code_context,
    read_file_with_context,
    read_file_with_line_context,
    render_chunk,
)
from rootscout.context.schemas import AssembledContext

__all__ = [
    "AssembledContext",
    "assemble_context",
    "build_chunked_context",
    "build_code_context",
    "read_file_with_context",
    "read_file_with_line_context",
    "render_chunk",
]
