"""Rank repository files against a bug report's signals.

Ranking runs in two explicit stages:

1. :func:`collect_candidates` walks the tree and scores every file by
   its path alone (cheap, no reads).
2. :func:`score_candidate_contents` reads only the top slice by path
   score and folds a content score into ``relevance_score``.

Files outside the top slice never get a content score, however well
their contents would match.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import pathspec

from rootscout.config import (
    DEFAULT_IGNORE_DIRECTORIES,
    DEFAULT_SOURCE_EXTENSIONS,
    Settings,
)
from rootscout.constants import (
    CONTENT_SCORE_WEIGHT,
    ERROR_MESSAGE_SCORE,
    FUNCTION_NAME_SCORE,
    KEYWORD_OCCURRENCE_CAP,
    KEYWORD_OCCURRENCE_SCORE,
    PATH_KEYWORD_SCORE,
    STACKTRACE_FILE_SCORE,
    STACKTRACE_FUNCTION_BONUS,
    TEST_FILE_PENALTY,
)
from rootscout.retrieval.schemas import FileCandidate
from rootscout.signals.schemas import SignalSet

logger = logging.getLogger(__name__)

# (substrings, bonus): every matching group adds its bonus once.
_ROLE_BONUSES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("error", "exception"), 10),
    (("handler", "controller"), 8),
    (("api/", "route"), 7),
    (("page.tsx", "page.ts"), 6),
    (("component",), 5),
    (("hook", "use"), 4),
    (("store", "state"), 4),
    (("util", "lib", "helper"), 3),
    (("service", "client"), 3),
    (("config", "setting"), 2),
)

_TEST_MARKERS = (".test.", ".spec.", "__test__")


def calculate_path_relevance(
    file_path: str, keywords: Sequence[str]
) -> int:
    """Score a path by keyword hits and architectural role hints."""
    score = 0
    lower_path = file_path.lower()

    for keyword in keywords:
        if len(keyword) < 2:
            continue
        if keyword.lower() in lower_path:
            score += PATH_KEYWORD_SCORE

    for markers, bonus in _ROLE_BONUSES:
        if any(m in lower_path for m in markers):
            score += bonus

    if any(m in lower_path for m in _TEST_MARKERS):
        score -= TEST_FILE_PENALTY

    return score


def search_file_content(
    file_path: str | Path,
    signals: SignalSet,
    max_read_size: int = 50_000,
) -> tuple[int, list[str]]:
    """Score a file's contents against the signal set.

    Returns ``(score, matched_keywords)``. Unreadable files score 0.
    """
    try:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            content = f.read(max_read_size).lower()
    except OSError:
        return 0, []

    score = 0
    matched: list[str] = []
    basename = Path(file_path).name.lower()

    # 1. Stack-trace file hits
    for loc in signals.error_locations:
        if basename != loc.file.lower():
            continue
        score += STACKTRACE_FILE_SCORE
        matched.append(f"stacktrace:{loc.file}")
        if loc.line and loc.function_name:
            if loc.function_name.lower() in content:
                score += STACKTRACE_FUNCTION_BONUS
                matched.append(f"function:{loc.function_name}")

    # 2. Function definitions or calls
    for func_name in signals.function_names:
        func = func_name.lower()
        variants = (
            f"function {func}",
            f"const {func}",
            f"{func}(",
            f"{func} =",
            f".{func}(",
        )
        if any(v in content for v in variants):
            score += FUNCTION_NAME_SCORE
            matched.append(f"function:{func_name}")

    # 3. Error message fragments
    for message in signals.error_messages:
        words = [w for w in message.lower().split() if len(w) > 3]
        hits = sum(1 for w in words if w in content)
        if hits >= 2 or (len(words) == 1 and hits == 1):
            score += ERROR_MESSAGE_SCORE
            matched.append(f"error:{message[:30]}")

    # 4. Raw keyword occurrences
    for keyword in signals.keywords:
        key = keyword.lower()
        if len(key) < 3:
            continue
        occurrences = content.count(key)
        if occurrences > 0:
            score += min(
                occurrences * KEYWORD_OCCURRENCE_SCORE,
                KEYWORD_OCCURRENCE_CAP,
            )
            matched.append(keyword)

    return score, list(dict.fromkeys(matched))


def collect_candidates(
    root: Path,
    signals: SignalSet,
    *,
    extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS,
    ignore_dirs: Sequence[str] = DEFAULT_IGNORE_DIRECTORIES,
    max_files: int = 200,
    max_depth: int = 6,
    respect_gitignore: bool = True,
) -> list[FileCandidate]:
    """Stage 1: walk ``root`` and path-score every source file.

    Returns candidates sorted by ``path_score`` descending; ties keep
    walk order (directory entries are visited in sorted order).
    """
    root = Path(root)
    spec = _load_gitignore(root) if respect_gitignore else _empty_spec()
    ignored = set(ignore_dirs)
    exts = tuple(extensions)
    candidates: list[FileCandidate] = []

    def walk(current: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            items = sorted(current.iterdir())
        except OSError:
            return

        for item in items:
            if len(candidates) >= max_files:
                return
            rel = item.relative_to(root).as_posix()
            try:
                if item.is_dir():
                    if item.name.startswith(".") or item.name in ignored:
                        continue
                    if spec.match_file(rel + "/"):
                        continue
                    walk(item, depth + 1)
                elif item.is_file() and item.name.endswith(exts):
                    if spec.match_file(rel):
                        continue
                    path_score = calculate_path_relevance(
                        rel, signals.keywords
                    )
                    candidates.append(
                        FileCandidate(
                            path=str(item),
                            size=item.stat().st_size,
                            path_score=path_score,
                            relevance_score=path_score,
                        )
                    )
            except OSError:
                continue

    walk(root, 0)
    candidates.sort(key=lambda c: c.path_score, reverse=True)
    return candidates


def score_candidate_contents(
    candidates: list[FileCandidate],
    signals: SignalSet,
    *,
    top_n: int = 50,
    max_read_size: int = 50_000,
) -> list[FileCandidate]:
    """Stage 2: content-score the first ``top_n`` candidates in place.

    Expects ``candidates`` sorted by path score. Returns the scored
    slice re-sorted by ``relevance_score``; candidates past ``top_n``
    are left untouched.
    """
    top = candidates[:top_n]
    for candidate in top:
        content_score, matched = search_file_content(
            candidate.path, signals, max_read_size
        )
        candidate.content_score = content_score
        candidate.matched_keywords = matched
        candidate.relevance_score = (
            candidate.path_score + content_score * CONTENT_SCORE_WEIGHT
        )
    return sorted(top, key=lambda c: c.relevance_score, reverse=True)


def find_relevant_files(
    root: Path,
    signals: SignalSet,
    settings: Settings | None = None,
) -> list[FileCandidate]:
    """Rank files under ``root`` for the given signals.

    Path-scores up to ``max_scan_files`` files, content-scores the top
    ``content_scan_top_n`` and returns at most ``max_output_files``.
    """
    cfg = settings or Settings()
    candidates = collect_candidates(
        Path(root),
        signals,
        extensions=cfg.source_extensions,
        ignore_dirs=cfg.ignore_directories,
        max_files=cfg.max_scan_files,
        max_depth=cfg.max_walk_depth,
        respect_gitignore=cfg.respect_gitignore,
    )
    ranked = score_candidate_contents(
        candidates,
        signals,
        top_n=cfg.content_scan_top_n,
        max_read_size=cfg.max_content_read_bytes,
    )

    for match in [c for c in ranked[:5] if c.relevance_score > 0]:
        logger.info(
            "event=ranked_file path=%s score=%d keywords=%s",
            match.path,
            match.relevance_score,
            ", ".join(match.matched_keywords[:3]),
        )

    return ranked[: cfg.max_output_files]


def _empty_spec() -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitwildmatch", [])


def _load_gitignore(root: Path) -> pathspec.PathSpec:
    """Load .gitignore patterns using pathspec."""
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return _empty_spec()
    try:
        with open(gitignore, encoding="utf-8") as f:
            return pathspec.PathSpec.from_lines("gitwildmatch", f)
    except OSError:
        return _empty_spec()
