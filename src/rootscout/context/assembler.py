"""Build a size-bounded code context from ranked files.

Two policies share one character budget:

* flat: whole (truncated) files, stack-trace files first with a
  numbered window around the failing line;
* chunked: only the declarations that score against the signals.

Blocks are all-or-nothing. A block that does not fit the remaining
budget is left out and assembly moves on to the next one.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence

from rootscout.chunking.parser import ParserProbe
from rootscout.chunking.relevance import get_relevant_chunks
from rootscout.chunking.schemas import CodeChunk
from rootscout.config import FENCE_LANGUAGES
from rootscout.constants import (
    CHUNKED_MAX_FILES,
    CHUNKED_MIN_USEFUL_CHARS,
    CONTEXT_SEPARATOR,
    FLAT_MAX_FILES,
    HIGH_SCORE_FILE_CHARS,
    HIGH_SCORE_THRESHOLD,
    LINE_CONTEXT_MAX_CHARS,
    LINE_CONTEXT_RADIUS,
    LOW_SCORE_FILE_CHARS,
    ContextPolicy,
)
from rootscout.context.schemas import AssembledContext
from rootscout.retrieval.schemas import FileCandidate
from rootscout.signals.schemas import SignalSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 60_000


class _Budget:
    """Joined-text accumulator that never exceeds ``limit`` chars.

    Separators between parts count against the limit.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0
        self.parts: list[str] = []

    def cost(self, block: str) -> int:
        sep = len(CONTEXT_SEPARATOR) if self.parts else 0
        return sep + len(block)

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def fits(self, extra: int) -> bool:
        return self.used + extra <= self.limit

    def add(self, block: str) -> bool:
        cost = self.cost(block)
        if not self.fits(cost):
            return False
        self.parts.append(block)
        self.used += cost
        return True

    def text(self) -> str:
        return CONTEXT_SEPARATOR.join(self.parts)


def _fence_language(file_path: str) -> str:
    return FENCE_LANGUAGES.get(os.path.splitext(file_path)[1].lower(), "")


def _read(file_path: str) -> str | None:
    try:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as exc:
        logger.debug(
            "event=context_read_skipped path=%s error=%s", file_path, exc
        )
        return None


def read_file_with_context(
    file_path: str, max_chars: int = HIGH_SCORE_FILE_CHARS
) -> str:
    """Render a file (or its first ``max_chars``) as a fenced block.

    Returns "" for unreadable files.
    """
    content = _read(file_path)
    if content is None:
        return ""
    total_lines = len(content.split("\n"))
    lang = _fence_language(file_path)

    if len(content) <= max_chars:
        return (
            f"### {file_path} ({total_lines} lines)\n"
            f"```{lang}\n{content}\n```"
        )

    truncated = content[:max_chars]
    shown = len(truncated.split("\n"))
    return (
        f"### {file_path} (showing {shown}/{total_lines} lines)\n"
        f"```{lang}\n{truncated}\n... (truncated)\n```"
    )


def _numbered_window(
    lines: list[str], target_line: int, radius: int
) -> tuple[int, int, str]:
    start = max(0, target_line - 1 - radius)
    end = min(len(lines), target_line + radius)
    body = "\n".join(
        f"{'>>>' if n == target_line else '   '} {n:>4}: {lines[n - 1]}"
        for n in range(start + 1, end + 1)
    )
    return start + 1, end, body


def read_file_with_line_context(
    file_path: str,
    target_line: int,
    context_lines: int = LINE_CONTEXT_RADIUS,
    max_chars: int = LINE_CONTEXT_MAX_CHARS,
) -> str:
    """Render numbered lines around ``target_line``, marked with ``>>>``.

    The window narrows until it fits ``max_chars``. A target outside
    the file falls back to :func:`read_file_with_context`.
    """
    content = _read(file_path)
    if content is None:
        return ""
    lines = content.split("\n")
    total = len(lines)
    if target_line <= 0 or target_line > total:
        return read_file_with_context(file_path, max_chars)

    lang = _fence_language(file_path)
    radius = context_lines
    while True:
        first, last, body = _numbered_window(lines, target_line, radius)
        rendered = (
            f"### {file_path} (lines {first}-{last} of {total}, "
            f"error at line {target_line})\n"
            f"```{lang}\n{body}\n```"
        )
        if len(rendered) <= max_chars or radius == 0:
            return rendered
        radius -= 1


def build_code_context(
    files: Sequence[FileCandidate],
    signals: SignalSet,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> AssembledContext:
    """Flat policy: stack-trace files first, then by relevance."""
    budget = _Budget(max_chars)
    seen: set[str] = set()
    included: list[str] = []

    by_basename: dict[str, FileCandidate] = {}
    for f in files:
        by_basename.setdefault(os.path.basename(f.path).lower(), f)

    for loc in signals.error_locations:
        if budget.exhausted:
            break
        match = by_basename.get(loc.file.lower())
        if match is None or match.path in seen:
            continue
        seen.add(match.path)
        if loc.line:
            block = read_file_with_line_context(match.path, loc.line)
            logger.debug(
                "event=priority_context path=%s line=%d",
                match.path,
                loc.line,
            )
        else:
            block = read_file_with_context(match.path)
        if block and budget.add(block):
            included.append(match.path)

    ranked = sorted(files, key=lambda f: f.relevance_score, reverse=True)
    for f in ranked:
        if budget.exhausted or len(included) >= FLAT_MAX_FILES:
            break
        if f.path in seen:
            continue
        seen.add(f.path)
        allocated = (
            HIGH_SCORE_FILE_CHARS
            if f.relevance_score > HIGH_SCORE_THRESHOLD
            else LOW_SCORE_FILE_CHARS
        )
        block = read_file_with_context(f.path, allocated)
        if block and budget.add(block):
            included.append(f.path)

    return AssembledContext(
        text=budget.text(), files=included, policy=ContextPolicy.FLAT
    )


def render_chunk(chunk: CodeChunk, lang: str = "") -> str:
    """One chunk as a heading plus fenced code."""
    return (
        f"#### {chunk.type}: {chunk.name} "
        f"(lines {chunk.start_line}-{chunk.end_line})\n"
        f"```{lang}\n{chunk.content}\n```\n"
    )


def build_chunked_context(
    files: Sequence[FileCandidate],
    signals: SignalSet,
    max_chars: int = DEFAULT_MAX_CHARS,
    probe: ParserProbe | None = None,
) -> AssembledContext:
    """Chunked policy: per file, only its scoring declarations."""
    budget = _Budget(max_chars)
    included: list[str] = []

    for f in files:
        if budget.exhausted or len(included) >= CHUNKED_MAX_FILES:
            break
        chunks = get_relevant_chunks(f.path, signals, probe=probe)
        if not chunks:
            continue

        header = f"### {f.path}\n"
        lang = _fence_language(f.path)
        # The file header is only paid for once a chunk makes it in.
        section = ""
        section_cost = budget.cost(header)
        for chunk in chunks:
            rendered = render_chunk(chunk, lang)
            if budget.fits(section_cost + len(rendered)):
                section += rendered
                section_cost += len(rendered)
        if section:
            budget.add(header + section)
            included.append(f.path)

    return AssembledContext(
        text=budget.text(), files=included, policy=ContextPolicy.CHUNKED
    )


def assemble_context(
    files: Sequence[FileCandidate],
    signals: SignalSet,
    *,
    policy: ContextPolicy = ContextPolicy.AUTO,
    max_chars: int = DEFAULT_MAX_CHARS,
    probe: ParserProbe | None = None,
) -> AssembledContext:
    """Assemble context with the requested policy.

    ``auto`` tries the chunked policy and falls back to flat when the
    chunks add up to too little text to be useful.
    """
    if policy == ContextPolicy.FLAT:
        context = build_code_context(files, signals, max_chars)
    else:
        context = build_chunked_context(files, signals, max_chars, probe)
        if (
            policy == ContextPolicy.AUTO
            and len(context.text) <= CHUNKED_MIN_USEFUL_CHARS
        ):
            logger.info(
                "event=context_fallback from=chunked to=flat chars=%d",
                len(context.text),
            )
            context = build_code_context(files, signals, max_chars)

    logger.info(
        "event=context_assembled policy=%s files=%d chars=%d",
        context.policy,
        len(context.files),
        len(context.text),
    )
    return context
