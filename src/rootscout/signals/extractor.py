"""Turn free-form bug report text into a :class:`SignalSet`.

Every function here is total: arbitrary text in, possibly-empty
collections out. Stack-trace formats are tried in a fixed priority
order and the first pattern that claims a file wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from rootscout.constants import MAX_IDENTIFIER_KEYWORDS
from rootscout.signals.schemas import BugReport, ErrorLocation, SignalSet

_SOURCE_EXT = r"(?:ts|tsx|js|jsx|py|go|rs|java|kt)"


def _basename(file: str) -> str:
    return file.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


def _int_or_none(value: str | None) -> int | None:
    return int(value) if value else None


@dataclass(frozen=True)
class _LocationPattern:
    """One stack-trace dialect: a regex plus how to read its match."""

    name: str
    regex: re.Pattern[str]
    file_of: Callable[[re.Match[str]], str]
    build: Callable[[re.Match[str]], ErrorLocation]


def _node(m: re.Match[str]) -> ErrorLocation:
    return ErrorLocation(
        file=_basename(m.group(2)),
        line=int(m.group(3)),
        column=int(m.group(4)),
        function_name=m.group(1),
        context=m.group(0),
    )


def _firefox(m: re.Match[str]) -> ErrorLocation:
    return ErrorLocation(
        file=_basename(m.group(2)),
        line=int(m.group(3)),
        column=int(m.group(4)),
        function_name=m.group(1),
        context=m.group(0),
    )


def _python(m: re.Match[str]) -> ErrorLocation:
    return ErrorLocation(
        file=_basename(m.group(1)),
        line=int(m.group(2)),
        function_name=m.group(3),
        context=m.group(0),
    )


def _generic(m: re.Match[str]) -> ErrorLocation:
    return ErrorLocation(
        file=_basename(m.group(1)),
        line=int(m.group(2)),
        column=_int_or_none(m.group(3)),
        context=m.group(0),
    )


def _webpack(m: re.Match[str]) -> ErrorLocation:
    return ErrorLocation(
        file=_basename(m.group(1)),
        line=_int_or_none(m.group(2)),
        context=m.group(0),
    )


# Priority order matters: a file claimed by an earlier dialect keeps
# that dialect's reading (e.g. its function name).
_LOCATION_PATTERNS: tuple[_LocationPattern, ...] = (
    _LocationPattern(
        name="node",
        regex=re.compile(
            r"at\s+(?:(\w[\w.<>]*)\s+)?\(?(?:https?://[^/]+)?"
            r"([^:)\s]+):(\d+):(\d+)\)?"
        ),
        file_of=lambda m: m.group(2),
        build=_node,
    ),
    _LocationPattern(
        name="firefox",
        regex=re.compile(r"(\w+)@([^:]+):(\d+):(\d+)"),
        file_of=lambda m: m.group(2),
        build=_firefox,
    ),
    _LocationPattern(
        name="python",
        regex=re.compile(
            r'File\s+"([^"]+)",\s+line\s+(\d+)(?:,\s+in\s+(\w+))?'
        ),
        file_of=lambda m: m.group(1),
        build=_python,
    ),
    _LocationPattern(
        name="generic",
        regex=re.compile(
            rf"([\w./-]+\.{_SOURCE_EXT}):(\d+)(?::(\d+))?"
        ),
        file_of=lambda m: m.group(1),
        build=_generic,
    ),
    _LocationPattern(
        name="webpack",
        regex=re.compile(r"webpack:///\./([^?:]+)(?::(\d+))?"),
        file_of=lambda m: m.group(1),
        build=_webpack,
    ),
)


def extract_error_locations(text: str) -> list[ErrorLocation]:
    """Extract file locations from stack traces in ``text``.

    Supports Node/Chrome (``at fn (file:line:col)``), Firefox
    (``fn@file:line:col``), Python (``File "x", line N, in fn``),
    generic ``file.ext:line[:col]`` and ``webpack:///./path``.
    """
    if not text:
        return []
    locations: list[ErrorLocation] = []
    seen_files: set[str] = set()
    for pattern in _LOCATION_PATTERNS:
        for match in pattern.regex.finditer(text):
            file = pattern.file_of(match)
            if not file or file in seen_files:
                continue
            seen_files.add(file)
            locations.append(pattern.build(match))
    return locations


_ERROR_MESSAGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:TypeError|ReferenceError|SyntaxError|RangeError|Error):"
        r"\s*(.+?)(?:\n|$)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:Uncaught|Unhandled)\s+(?:Error|Exception):\s*(.+?)(?:\n|$)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:error|Error|ERROR):\s*(.+?)(?:\n|$)"),
    re.compile(
        r"(?:AssertionError|assertion failed):\s*(.+?)(?:\n|$)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:NetworkError|FetchError|AxiosError):\s*(.+?)(?:\n|$)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:4\d{2}|5\d{2})\s+(?:error|Error)?:?\s*(.+?)(?:\n|$)",
        re.IGNORECASE,
    ),
)


def extract_error_messages(text: str) -> list[str]:
    """Collect distinct error messages following known error prefixes."""
    if not text:
        return []
    messages: list[str] = []
    for pattern in _ERROR_MESSAGE_PATTERNS:
        for match in pattern.finditer(text):
            captured = match.group(1)
            if captured and len(captured) > 3:
                messages.append(captured.strip())
    return _dedupe(messages)


_FILE_PATH_RE = re.compile(
    r"(?:[\w-]+/)*[\w-]+\.(?:tsx|ts|jsx|js|py|go|rs|java|kt)"
)
_ERROR_TYPE_RE = re.compile(
    r"(?:Error|Exception|TypeError|ReferenceError|SyntaxError"
    r"|RuntimeError|NullPointerException)"
)
_IDENTIFIER_RE = re.compile(
    r"\b[A-Z][a-zA-Z0-9]{2,}\b|\b[a-z]+[A-Z][a-zA-Z0-9]*\b"
)


def extract_keywords(text: str) -> list[str]:
    """Search keywords: file paths, error types, identifiers, trace frames.

    Only the first 15 PascalCase/camelCase identifiers are kept.
    """
    if not text:
        return []
    keywords: list[str] = []
    keywords.extend(m.group(0) for m in _FILE_PATH_RE.finditer(text))
    keywords.extend(m.group(0) for m in _ERROR_TYPE_RE.finditer(text))
    identifiers = [m.group(0) for m in _IDENTIFIER_RE.finditer(text)]
    keywords.extend(identifiers[:MAX_IDENTIFIER_KEYWORDS])

    locations = extract_error_locations(text)
    keywords.extend(loc.file for loc in locations)
    keywords.extend(
        loc.function_name for loc in locations if loc.function_name
    )
    return _dedupe(keywords)


def build_signal_set(text: str) -> SignalSet:
    """Run every extractor over ``text`` and freeze the result."""
    locations = extract_error_locations(text)
    return SignalSet(
        keywords=tuple(extract_keywords(text)),
        error_locations=tuple(locations),
        error_messages=tuple(extract_error_messages(text)),
        function_names=tuple(
            loc.function_name for loc in locations if loc.function_name
        ),
    )


def signals_from_report(report: BugReport) -> SignalSet:
    """Build the signal set for a parsed bug report."""
    return build_signal_set(report.signal_text())


def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))
