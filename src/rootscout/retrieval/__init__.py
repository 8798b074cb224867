"""File retrieval: path/content ranking, import expansion, rerank."""

from rootscout.retrieval.imports import (
    build_import_graph,
    expand_files_with_imports,
    parse_imports,
    resolve_import_path,
)
from rootscout.retrieval.ranker import (
    calculate_path_relevance,
    collect_candidates,
    find_relevant_files,
    score_candidate_contents,
    search_file_content,
)
from rootscout.retrieval.schemas import FileCandidate, ImportEdge, ImportGraph

__all__ = [
    "FileCandidate",
    "ImportEdge",
    "ImportGraph",
    "build_import_graph",
    "calculate_path_relevance",
    "collect_candidates",
    "expand_files_with_imports",
    "find_relevant_files",
    "parse_imports",
    "resolve_import_path",
    "score_candidate_contents",
    "search_file_content",
]
