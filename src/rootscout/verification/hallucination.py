"""Check an LLM analysis's claims against the context it was shown.

Four independent checks, each producing :class:`VerificationClaim`s:

1. file: do the affected files exist, and were they in context?
2. code citation: does quoted code appear in the context?
3. line reference: do ``file:line`` references point at real lines
   whose content the explanation actually talks about?
4. symbol: do repeatedly mentioned identifiers occur in the context?

Suggested-fix changes get the file check plus a citation check on
their ``before`` snippet.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from rootscout.constants import (
    BLOCK_CITATION_MIN_CHARS,
    CRITICAL_PENALTY,
    HALLUCINATION_CONFIDENCE_CAP,
    HALLUCINATION_WARNING_CAP,
    INLINE_CITATION_MIN_CHARS,
    LINE_TOKEN_MATCH_RATIO,
    LINE_WINDOW_MIN_MATCHES,
    MAX_SYMBOL_CHECKS,
    PARTIAL_MATCH_RATIO,
    WARNING_PENALTY,
    CitationMatch,
    ClaimKind,
    ClaimSeverity,
)
from rootscout.verification.schemas import (
    AnalysisToVerify,
    PenaltyResult,
    VerificationClaim,
    VerificationContext,
    VerificationReport,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File existence
# ---------------------------------------------------------------------------


def _normalize_path(file: str) -> str:
    return file.replace("\\", "/").lstrip("/")


def _in_context(normalized: str, relevant_files: list[str]) -> bool:
    basename = os.path.basename(normalized)
    for f in relevant_files:
        candidate = f.replace("\\", "/")
        if candidate.endswith(normalized):
            return True
        if os.path.basename(candidate) == basename:
            return True
    return False


def _exists_on_disk(normalized: str, project_root: str) -> bool:
    return any(
        os.path.isfile(p)
        for p in (
            os.path.join(project_root, normalized),
            os.path.join(project_root, "src", normalized),
        )
    )


def verify_file_existence(
    affected_files: list[str], context: VerificationContext
) -> list[VerificationClaim]:
    """One claim per file: in context (info), on disk only (warning),
    or nowhere (critical)."""
    claims: list[VerificationClaim] = []
    for file in affected_files:
        normalized = _normalize_path(file)
        label = f"File: {file}"
        if _in_context(normalized, context.relevant_files):
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.FILE,
                    claim=label,
                    verified=True,
                    severity=ClaimSeverity.INFO,
                    detail="File was in context",
                )
            )
        elif _exists_on_disk(normalized, context.project_root):
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.FILE,
                    claim=label,
                    verified=True,
                    severity=ClaimSeverity.WARNING,
                    detail=(
                        "File exists but was not in the analysis context; "
                        "the claim may be inferred"
                    ),
                )
            )
        else:
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.FILE,
                    claim=label,
                    verified=False,
                    severity=ClaimSeverity.CRITICAL,
                    detail=(
                        f'File "{file}" was not in context and does not '
                        "exist in the project"
                    ),
                )
            )
    return claims


# ---------------------------------------------------------------------------
# Code citations
# ---------------------------------------------------------------------------

_FENCED_BLOCK = re.compile(r"```(?:\w+)?\s*([\s\S]*?)```")
_INLINE_CODE = re.compile(r"`([^`]+)`")
_DOTTED_NAME = re.compile(r"^\w+\.\w+$")


def extract_code_citations(text: str) -> list[str]:
    """Quoted code in ``text``: fenced blocks, then inline spans.

    Inline spans that look like paths or ``name.ext`` are ignored.
    """
    citations: list[str] = []
    for match in _FENCED_BLOCK.finditer(text):
        code = match.group(1).strip()
        if len(code) > BLOCK_CITATION_MIN_CHARS:
            citations.append(code)

    for match in _INLINE_CODE.finditer(_FENCED_BLOCK.sub(" ", text)):
        code = match.group(1).strip()
        if (
            len(code) > INLINE_CITATION_MIN_CHARS
            and "/" not in code
            and not _DOTTED_NAME.match(code)
        ):
            citations.append(code)
    return citations


def normalize_code(code: str) -> str:
    """Collapse whitespace and drop it around punctuation; lowercase."""
    code = re.sub(r"\s+", " ", code)
    code = re.sub(r"\s*([{};,()=])\s*", r"\1", code)
    return code.strip().lower()


def find_code_in_context(citation: str, context: str) -> CitationMatch:
    """Locate ``citation`` in ``context``, strictest match first."""
    if citation in context:
        return CitationMatch.EXACT

    normalized_citation = normalize_code(citation)
    normalized_context = normalize_code(context)
    if normalized_citation in normalized_context:
        return CitationMatch.NORMALIZED

    tokens = [t for t in normalized_citation.split() if len(t) > 2]
    if len(tokens) >= 3:
        hits = sum(1 for t in tokens if t in normalized_context)
        if hits / len(tokens) >= PARTIAL_MATCH_RATIO:
            return CitationMatch.PARTIAL
    return CitationMatch.NONE


def _shorten(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def verify_code_citations(
    evidence: str, context: VerificationContext
) -> list[VerificationClaim]:
    claims: list[VerificationClaim] = []
    for citation in extract_code_citations(evidence):
        match = find_code_in_context(citation, context.code_context)
        if match == CitationMatch.NONE:
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.CODE_CITATION,
                    claim=_shorten(citation, 80),
                    verified=False,
                    severity=ClaimSeverity.CRITICAL,
                    detail=(
                        "Code snippet not found in provided context; "
                        "possible hallucination"
                    ),
                )
            )
        elif match == CitationMatch.PARTIAL:
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.CODE_CITATION,
                    claim=_shorten(citation, 80),
                    verified=True,
                    severity=ClaimSeverity.WARNING,
                    detail=(
                        "Code found via partial match (85%+ tokens); "
                        "verify manually"
                    ),
                )
            )
        else:
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.CODE_CITATION,
                    claim=_shorten(citation, 50),
                    verified=True,
                    severity=ClaimSeverity.INFO,
                    detail=f"Code found in context ({match} match)",
                )
            )
    return claims


# ---------------------------------------------------------------------------
# Line references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineReference:
    file: str
    line: int


_FILE_TOKEN = r"([a-zA-Z0-9_-]+\.[a-zA-Z]+)"

# (pattern, file group, line group), all applied, results deduplicated.
_LINE_REF_PATTERNS: tuple[tuple[re.Pattern[str], int, int], ...] = (
    (re.compile(_FILE_TOKEN + r":(\d+)"), 1, 2),
    (re.compile(_FILE_TOKEN + r":\s*line\s*(\d+)", re.IGNORECASE), 1, 2),
    (
        re.compile(
            r"line\s*(\d+)\s*(?:of|in)\s*" + _FILE_TOKEN, re.IGNORECASE
        ),
        2,
        1,
    ),
)

_MAX_LINE_NUMBER = 100_000

_TOKEN_SPLIT = re.compile(r"[\s(){}\[\];,=<>]+")
_LINE_STOPWORDS = frozenset({
    "const", "let", "var", "function", "return", "if", "else", "for",
    "while", "import", "export", "from", "async", "await",
})


def extract_line_references(text: str) -> list[LineReference]:
    """``file:line`` style references in first-seen order, deduplicated."""
    seen: set[LineReference] = set()
    refs: list[LineReference] = []
    for pattern, file_group, line_group in _LINE_REF_PATTERNS:
        for match in pattern.finditer(text):
            line = int(match.group(line_group))
            if not 0 < line < _MAX_LINE_NUMBER:
                continue
            ref = LineReference(file=match.group(file_group), line=line)
            if ref not in seen:
                seen.add(ref)
                refs.append(ref)
    return refs


def line_content_mentioned(
    line_content: str, window: str, explanation: str
) -> bool:
    """Whether ``explanation`` plausibly talks about the cited line.

    True when the line is trivial, quoted verbatim, at least half of
    its significant tokens appear, or at least three tokens from the
    surrounding window appear.
    """
    text = explanation.lower()
    line = line_content.lower().strip()
    if len(line) < 5 or line in text:
        return True

    significant = [
        t
        for t in _TOKEN_SPLIT.split(line)
        if len(t) > 3 and t not in _LINE_STOPWORDS
    ]
    if not significant:
        return True
    matched = sum(1 for t in significant if t in text)
    if matched / len(significant) >= LINE_TOKEN_MATCH_RATIO:
        return True

    window_tokens = [
        t for t in _TOKEN_SPLIT.split(window.lower()) if len(t) > 4
    ]
    window_hits = sum(1 for t in window_tokens if t in text)
    return window_hits >= LINE_WINDOW_MIN_MATCHES


def _line_claim(
    ref: LineReference,
    verified: bool,
    severity: ClaimSeverity,
    detail: str,
) -> VerificationClaim:
    return VerificationClaim(
        kind=ClaimKind.LINE_REFERENCE,
        claim=f"{ref.file}:{ref.line}",
        verified=verified,
        severity=severity,
        detail=detail,
    )


def verify_line_references(
    explanation: str, evidence: str, context: VerificationContext
) -> list[VerificationClaim]:
    claims: list[VerificationClaim] = []
    all_text = f"{explanation}\n{evidence}"

    for ref in extract_line_references(all_text):
        matching = next(
            (
                f
                for f in context.relevant_files
                if f.endswith(ref.file) or ref.file in f
            ),
            None,
        )
        if matching is None:
            claims.append(
                _line_claim(
                    ref,
                    False,
                    ClaimSeverity.WARNING,
                    f'File "{ref.file}" not found in context',
                )
            )
            continue

        try:
            with open(matching, encoding="utf-8", errors="replace") as f:
                lines = f.read().split("\n")
        except OSError:
            claims.append(
                _line_claim(
                    ref,
                    False,
                    ClaimSeverity.WARNING,
                    "Could not read file to verify line number",
                )
            )
            continue

        if ref.line > len(lines):
            claims.append(
                _line_claim(
                    ref,
                    False,
                    ClaimSeverity.CRITICAL,
                    f"Line {ref.line} exceeds file length "
                    f"({len(lines)} lines)",
                )
            )
            continue

        actual = lines[ref.line - 1].strip()
        window = " ".join(lines[max(0, ref.line - 3) : ref.line + 2])
        if line_content_mentioned(actual, window, all_text):
            claims.append(
                _line_claim(
                    ref,
                    True,
                    ClaimSeverity.INFO,
                    f'Line content matches explanation: "{actual[:60]}"',
                )
            )
        else:
            claims.append(
                _line_claim(
                    ref,
                    True,
                    ClaimSeverity.WARNING,
                    "Line exists but its content is not mentioned in the "
                    f'explanation. Actual: "{actual[:60]}"',
                )
            )
    return claims


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------

_CALL_LIKE = re.compile(r"\b([a-z][a-zA-Z0-9]*)\s*\(")
_PASCAL_CASE = re.compile(r"\b([A-Z][a-zA-Z0-9]+)\b")

_CALL_DENYLIST = frozenset({
    "if", "for", "while", "switch", "catch", "function", "return", "new",
    "typeof",
})
_TYPE_DENYLIST = frozenset({
    "Error", "Promise", "Array", "Object", "String", "Number", "Boolean",
    "Date", "Map", "Set",
})

# Capitalized prose at sentence starts, not identifiers.
_PROSE_DENYLIST = frozenset({
    "The", "This", "That", "These", "Those", "There", "Here", "When",
    "While", "If", "In", "It", "Its", "On", "For", "And", "But", "Or",
    "After", "Before", "Because", "Since", "Also", "However", "Then",
    "An", "As", "At", "By", "To", "With", "Without", "Not", "No", "Line",
    "File", "Fix", "Root", "Cause",
})


def extract_symbol_references(text: str) -> list[str]:
    """Call-like and PascalCase identifiers, first-seen order."""
    symbols: list[str] = []
    for match in _CALL_LIKE.finditer(text):
        name = match.group(1)
        if len(name) > 2 and name not in _CALL_DENYLIST:
            symbols.append(name)
    for match in _PASCAL_CASE.finditer(text):
        name = match.group(1)
        if name not in _TYPE_DENYLIST and name not in _PROSE_DENYLIST:
            symbols.append(name)
    return list(dict.fromkeys(symbols))


def _word(symbol: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(symbol)}\b")


def verify_symbol_references(
    explanation: str, context: VerificationContext
) -> list[VerificationClaim]:
    """Warn about emphasized symbols missing from the context.

    Only symbols mentioned at least twice, or wrapped in backticks,
    are checked. Found symbols produce no claim.
    """
    significant = [
        s
        for s in extract_symbol_references(explanation)
        if len(_word(s).findall(explanation)) >= 2
        or f"`{s}`" in explanation
    ]
    claims: list[VerificationClaim] = []
    for symbol in significant[:MAX_SYMBOL_CHECKS]:
        if _word(symbol).search(context.code_context):
            continue
        claims.append(
            VerificationClaim(
                kind=ClaimKind.SYMBOL,
                claim=symbol,
                verified=False,
                severity=ClaimSeverity.WARNING,
                detail=(
                    f'Symbol "{symbol}" not found in provided code '
                    "context"
                ),
            )
        )
    return claims


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

_Check: TypeAlias = Callable[
    [AnalysisToVerify, VerificationContext], list[VerificationClaim]
]


def _file_checks(
    analysis: AnalysisToVerify, context: VerificationContext
) -> list[VerificationClaim]:
    return verify_file_existence(analysis.root_cause.affected_files, context)


def _citation_checks(
    analysis: AnalysisToVerify, context: VerificationContext
) -> list[VerificationClaim]:
    return verify_code_citations(analysis.code_verification.evidence, context)


def _line_checks(
    analysis: AnalysisToVerify, context: VerificationContext
) -> list[VerificationClaim]:
    return verify_line_references(
        analysis.root_cause.explanation,
        analysis.code_verification.evidence,
        context,
    )


def _symbol_checks(
    analysis: AnalysisToVerify, context: VerificationContext
) -> list[VerificationClaim]:
    return verify_symbol_references(analysis.root_cause.explanation, context)


def verify_suggested_fix(
    analysis: AnalysisToVerify, context: VerificationContext
) -> list[VerificationClaim]:
    """File check per changed file; missing ``before`` code is critical."""
    claims: list[VerificationClaim] = []
    for change in analysis.suggested_fix.code_changes:
        claims.extend(verify_file_existence([change.file], context))
        if not change.before:
            continue
        match = find_code_in_context(change.before, context.code_context)
        if match == CitationMatch.NONE:
            claims.append(
                VerificationClaim(
                    kind=ClaimKind.CODE_CITATION,
                    claim=f"Before code in {change.file}",
                    verified=False,
                    severity=ClaimSeverity.CRITICAL,
                    detail=(
                        '"Before" code snippet not found; the fix may be '
                        "based on an incorrect assumption"
                    ),
                )
            )
    return claims


_CHECKS: tuple[_Check, ...] = (
    _file_checks,
    _citation_checks,
    _line_checks,
    _symbol_checks,
    verify_suggested_fix,
)


def build_report(claims: list[VerificationClaim]) -> VerificationReport:
    """Score claims: 100, -25 per critical and -10 per warning failure."""
    critical = sum(1 for c in claims if c.failed_critical)
    warnings = sum(1 for c in claims if c.failed_warning)
    score = 100 - critical * CRITICAL_PENALTY - warnings * WARNING_PENALTY
    score = max(0, min(100, score))

    if critical:
        summary = (
            f"{critical} critical hallucination(s) detected: analysis "
            "referenced code that is not in context"
        )
    elif warnings:
        summary = (
            f"{warnings} unverified claim(s): some references could not "
            "be confirmed"
        )
    else:
        summary = "All claims verified against code context"

    return VerificationReport(
        claims=claims,
        score=score,
        is_valid=critical == 0,
        summary=summary,
    )


def check_for_hallucinations(
    analysis: AnalysisToVerify, context: VerificationContext
) -> VerificationReport:
    """Run every check and aggregate the claims."""
    claims: list[VerificationClaim] = []
    for check in _CHECKS:
        claims.extend(check(analysis, context))
    report = build_report(claims)
    logger.info(
        "event=verification_complete claims=%d score=%d valid=%s",
        len(claims),
        report.score,
        report.is_valid,
    )
    return report


def apply_hallucination_penalty(
    original_confidence: float, report: VerificationReport
) -> PenaltyResult:
    """Cap confidence at 30 on any critical failure; -10 per warning
    failure, at most -30 in total."""
    confidence = original_confidence
    penalties: list[str] = []

    critical = report.critical_failures
    if critical:
        confidence = min(confidence, HALLUCINATION_CONFIDENCE_CAP)
        penalties.append(
            f"Hallucination detected: {len(critical)} critical unverified "
            f"claim(s) (capped at {HALLUCINATION_CONFIDENCE_CAP}%)"
        )
        penalties.extend(
            f"   - {c.kind}: {c.claim}" for c in critical[:3]
        )

    warnings = report.warning_failures
    if warnings:
        penalty = min(
            len(warnings) * WARNING_PENALTY, HALLUCINATION_WARNING_CAP
        )
        confidence -= penalty
        penalties.append(
            f"{len(warnings)} unverified reference(s) (-{penalty}%)"
        )

    return PenaltyResult(
        confidence=max(0, min(100, round(confidence))),
        penalties=penalties,
    )
