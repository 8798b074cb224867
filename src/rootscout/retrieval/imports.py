"""Import graph expansion for JavaScript/TypeScript candidates.

Helper modules rarely mention the words in a bug report, so they are
pulled in through the files that import them and inherit part of the
importer's relevance score.
"""

from __future__ import annotations

import logging
import math
import os
import re
from pathlib import Path

from rootscout.config import RESOLVE_EXTENSIONS
from rootscout.constants import IMPORTED_SCORE_RATIO, ImportKind
from rootscout.retrieval.schemas import FileCandidate, ImportEdge, ImportGraph

logger = logging.getLogger(__name__)

# Each pass is independent; a specifier seen by an earlier pass keeps
# that pass's kind.
_IMPORT_PASSES: tuple[tuple[re.Pattern[str], ImportKind], ...] = (
    (
        re.compile(
            r"""import\s+(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+(?:\s*,\s*\{[^}]*\})?)\s+from\s+)?['"]([^'"]+)['"]"""
        ),
        ImportKind.IMPORT,
    ),
    (
        re.compile(r"""require\s*\(\s*['"]([^'"]+)['"]\s*\)"""),
        ImportKind.REQUIRE,
    ),
    (
        re.compile(r"""import\s*\(\s*['"]([^'"]+)['"]\s*\)"""),
        ImportKind.DYNAMIC,
    ),
    (
        re.compile(
            r"""export\s+(?:\{[^}]*\}|\*)\s+from\s+['"]([^'"]+)['"]"""
        ),
        ImportKind.IMPORT,
    ),
)


def _is_relative(source: str) -> bool:
    return source.startswith((".", "/"))


def parse_imports(
    content: str, from_file: str | None = None
) -> list[ImportEdge]:
    """Parse static, require, dynamic and re-export module references."""
    edges: list[ImportEdge] = []
    seen: set[str] = set()
    for pattern, kind in _IMPORT_PASSES:
        for match in pattern.finditer(content):
            source = match.group(1)
            if not source or source in seen:
                continue
            seen.add(source)
            edges.append(
                ImportEdge(
                    source=source,
                    from_file=from_file,
                    is_relative=_is_relative(source),
                    kind=kind,
                )
            )
    return edges


def resolve_import_path(
    import_source: str,
    from_file: str | Path,
    base_dir: str | Path,
) -> str | None:
    """Resolve a relative or root-absolute specifier to an existing file.

    Tries each known extension on the bare path, then ``index.<ext>``
    inside it as a directory, then the literal path. Bare package
    names and aliases always resolve to ``None``.
    """
    if not _is_relative(import_source):
        return None

    if import_source.startswith("/"):
        base_path = os.path.join(base_dir, import_source.lstrip("/"))
    else:
        base_path = os.path.join(os.path.dirname(from_file), import_source)
    base_path = os.path.normpath(base_path)

    for ext in RESOLVE_EXTENSIONS:
        candidate = base_path + ext
        if os.path.isfile(candidate):
            return candidate

    for ext in RESOLVE_EXTENSIONS:
        candidate = os.path.join(base_path, f"index{ext}")
        if os.path.isfile(candidate):
            return candidate

    if os.path.isfile(base_path):
        return base_path

    return None


def resolve_imports(
    content: str, from_file: str, base_dir: str | Path
) -> list[ImportEdge]:
    """Parse ``content`` and fill in ``resolved`` for local targets."""
    edges: list[ImportEdge] = []
    for edge in parse_imports(content, from_file):
        if edge.is_relative:
            target = resolve_import_path(edge.source, from_file, base_dir)
            if target:
                edge = edge.model_copy(update={"resolved": target})
        edges.append(edge)
    return edges


def build_import_graph(
    files: list[FileCandidate],
    base_dir: str | Path,
    max_files_to_parse: int = 20,
) -> ImportGraph:
    """Map each of the top candidates to the local files it imports."""
    graph: ImportGraph = {}
    for file in files[:max_files_to_parse]:
        try:
            with open(file.path, encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError:
            continue

        resolved = [
            edge.resolved
            for edge in resolve_imports(content, file.path, base_dir)
            if edge.resolved
        ]
        if resolved:
            graph[file.path] = resolved
    return graph


def expand_files_with_imports(
    files: list[FileCandidate],
    import_graph: ImportGraph,
    max_expansion: int = 10,
) -> list[FileCandidate]:
    """Append imported files that are not yet candidates.

    New entries score ``floor(0.6 * importer.relevance_score)`` and are
    tagged ``imported-by:<importer basename>``.
    """
    existing = {os.path.normpath(f.path) for f in files}
    by_path = {f.path: f for f in files}
    added: list[FileCandidate] = []

    for source_file, imported_paths in import_graph.items():
        source = by_path.get(source_file)
        base_score = source.relevance_score if source else 0

        for imported in imported_paths:
            if len(added) >= max_expansion:
                break
            key = os.path.normpath(imported)
            if key in existing:
                continue
            existing.add(key)
            try:
                size = os.stat(imported).st_size
            except OSError:
                continue
            added.append(
                FileCandidate(
                    path=imported,
                    size=size,
                    relevance_score=math.floor(
                        base_score * IMPORTED_SCORE_RATIO
                    ),
                    matched_keywords=[
                        f"imported-by:{Path(source_file).name}"
                    ],
                )
            )

    added.sort(key=lambda f: f.relevance_score, reverse=True)
    if added:
        logger.info(
            "event=imports_expanded added=%d files=%s",
            len(added),
            ", ".join(f.path for f in added[:5]),
        )
    return [*files, *added]
