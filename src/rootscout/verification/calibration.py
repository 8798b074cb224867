"""Confidence calibration from evidence quality.

Self-reported confidence is adjusted by a fixed sequence of rules.
Rules run in order and each sees the value left by the previous one,
so a cap applied early can keep a later threshold rule from firing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import TypeAlias

from rootscout.constants import (
    ALTERNATIVES_BONUS,
    ALTERNATIVES_CEILING,
    ASSUMPTIONS_PENALTY,
    COUNTER_EVIDENCE_PENALTY,
    GENERIC_ANSWER_CAP,
    MIN_EVIDENCE_CHARS,
    NO_FILES_CAP,
    NO_LINE_MATCH_PENALTY,
    NO_SELF_VALIDATION_CAP,
    ROLE_MISMATCH_PENALTY,
    UNCERTAINTY_CAP,
    WEAK_EVIDENCE_PENALTY,
    WEAK_JUSTIFICATION_CAP,
    FileRole,
)
from rootscout.signals.schemas import ErrorLocation
from rootscout.verification.schemas import (
    AnalysisToVerify,
    ConfidenceCalibration,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File roles
# ---------------------------------------------------------------------------

BUG_CATEGORY_EXPECTED_ROLES: dict[str, frozenset[FileRole]] = {
    "logic_error": frozenset({
        FileRole.COMPONENT, FileRole.HOOK, FileRole.API, FileRole.SCHEMA,
        FileRole.UTIL,
    }),
    "runtime_error": frozenset({
        FileRole.COMPONENT, FileRole.HOOK, FileRole.API, FileRole.UTIL,
    }),
    "ui_ux": frozenset({FileRole.COMPONENT, FileRole.STYLE, FileRole.HOOK}),
    "performance": frozenset({
        FileRole.COMPONENT, FileRole.HOOK, FileRole.API, FileRole.UTIL,
        FileRole.CONFIG,
    }),
    "security": frozenset({
        FileRole.API, FileRole.UTIL, FileRole.CONFIG, FileRole.SCHEMA,
    }),
    "configuration": frozenset({
        FileRole.CONFIG, FileRole.API, FileRole.UTIL,
    }),
    "unknown": frozenset({
        FileRole.COMPONENT, FileRole.HOOK, FileRole.API, FileRole.SCHEMA,
        FileRole.UTIL, FileRole.CONFIG,
    }),
}

# First matching role wins. Each pattern is tried against the original
# path and its lowercased, forward-slashed form.
_RolePatterns: TypeAlias = tuple[FileRole, tuple[re.Pattern[str], ...]]

_FILE_ROLE_PATTERNS: tuple[_RolePatterns, ...] = (
    (
        FileRole.ANALYTICS,
        tuple(
            re.compile(p, f)
            for p, f in (
                (r"use[A-Z]?[Aa]nalytics", 0),
                (r"analytics", re.IGNORECASE),
                (r"tracking", re.IGNORECASE),
                (r"telemetry", re.IGNORECASE),
                (r"ga4?\.ts$", re.IGNORECASE),
                (r"gtm\.ts$", re.IGNORECASE),
                (r"mixpanel", re.IGNORECASE),
                (r"amplitude", re.IGNORECASE),
                (r"segment", re.IGNORECASE),
                (r"posthog", re.IGNORECASE),
            )
        ),
    ),
    (
        FileRole.TEST,
        tuple(
            re.compile(p)
            for p in (
                r"\.test\.[jt]sx?$",
                r"\.spec\.[jt]sx?$",
                r"__tests__/",
                r"/tests?/",
            )
        ),
    ),
    (
        FileRole.API,
        tuple(
            re.compile(p)
            for p in (
                r"/api/",
                r"/routes?/",
                r"route\.[jt]s$",
                r"controller\.[jt]s$",
                r"server\.[jt]s$",
            )
        ),
    ),
    (
        FileRole.SCHEMA,
        tuple(
            re.compile(p, f)
            for p, f in (
                (r"schema", re.IGNORECASE),
                (r"validation", re.IGNORECASE),
                (r"validator", re.IGNORECASE),
                (r"/types/", 0),
                (r"\.types\.[jt]s$", 0),
                (r"\.schema\.[jt]s$", 0),
                (r"\.d\.ts$", 0),
            )
        ),
    ),
    (
        FileRole.HOOK,
        (re.compile(r"/hooks?/"), re.compile(r"use[A-Z][a-zA-Z]+\.[jt]sx?$")),
    ),
    (
        FileRole.COMPONENT,
        tuple(
            re.compile(p)
            for p in (
                r"/components?/",
                r"/pages?/",
                r"/app/.*/page\.[jt]sx?$",
                r"/app/.*/layout\.[jt]sx?$",
                r"\.[jt]sx$",
            )
        ),
    ),
    (
        FileRole.CONFIG,
        tuple(
            re.compile(p, f)
            for p, f in (
                (r"config", re.IGNORECASE),
                (r"\.config\.[jt]s$", 0),
                (r"\.env", 0),
                (r"settings", re.IGNORECASE),
            )
        ),
    ),
    (
        FileRole.STYLE,
        tuple(
            re.compile(p, f)
            for p, f in (
                (r"\.css$", 0),
                (r"\.scss$", 0),
                (r"\.sass$", 0),
                (r"\.less$", 0),
                (r"styles?/", re.IGNORECASE),
            )
        ),
    ),
    (
        FileRole.UTIL,
        tuple(
            re.compile(p)
            for p in (r"/utils?/", r"/lib/", r"/helpers?/", r"/common/")
        ),
    ),
)


def classify_file_role(file_path: str) -> FileRole:
    """Infer a file's architectural role from its path."""
    normalized = file_path.lower().replace("\\", "/")
    for role, patterns in _FILE_ROLE_PATTERNS:
        for pattern in patterns:
            if pattern.search(normalized) or pattern.search(file_path):
                return role
    return FileRole.UNKNOWN


def is_role_appropriate_for_category(role: FileRole, category: str) -> bool:
    """Analytics and test files never explain a bug; unknown categories
    accept any other role."""
    if role in (FileRole.ANALYTICS, FileRole.TEST):
        return False
    expected = BUG_CATEGORY_EXPECTED_ROLES.get(category)
    if expected is None:
        return True
    return role in expected


# ---------------------------------------------------------------------------
# Phrase lists
# ---------------------------------------------------------------------------

UNCERTAINTY_MARKERS: tuple[str, ...] = (
    "uncertain",
    "not sure",
    "unclear",
    "possibly",
    "might be",
    "could be",
    "may be",
    "perhaps",
    "speculative",
    "불확실",
    "추가 조사",
    "확인 필요",
    "가능성",
    "可能",
    "不确定",
    "也许",
)

WEAK_JUSTIFICATIONS: tuple[str, ...] = (
    "seems likely",
    "probably",
    "based on the description",
    "user reported",
    "appears to be",
    "looks like",
    "should be",
)

GENERIC_PHRASES: tuple[str, ...] = (
    "check the logs",
    "add error handling",
    "review the code",
    "investigate further",
    "debug the issue",
    "more information needed",
    "could be many things",
    "various reasons",
    "multiple causes",
    "로그를 확인",
    "에러 처리 추가",
    "추가 조사 필요",
)

# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------

_CALIBRATION_NOTE = "**Confidence Calibration:**"


def _strip_calibration_note(text: str | None) -> str:
    if not text:
        return ""
    head, _, _ = text.partition(_CALIBRATION_NOTE)
    return head.rstrip()


def _has_line_correlation(
    affected_files: list[str], error_locations: Sequence[ErrorLocation]
) -> bool:
    lowered = [f.lower() for f in affected_files]
    return any(
        loc.line and any(loc.file.lower() in f for f in lowered)
        for loc in error_locations
    )


def calibrate_confidence(
    analysis: AnalysisToVerify,
    error_locations: Sequence[ErrorLocation] = (),
) -> ConfidenceCalibration:
    """Apply the calibration rules once, in order.

    1. no affected files: cap 40
    2. no affected file matches a stack-trace line and value > 70: -20
    3. primary file's role does not fit the bug category: -25
    4. uncertainty language: cap 60
    5. no confirmed bug and evidence under 50 chars: -15
    6. self-validation signals (see below), or cap 70 without any
    7. two or more generic phrases and value > 50: cap 50
    """
    original = analysis.confidence
    value = float(original)
    penalties: list[str] = []
    root = analysis.root_cause
    files = root.affected_files

    if not files:
        value = min(value, NO_FILES_CAP)
        penalties.append(
            f"No specific file identified (capped at {NO_FILES_CAP}%)"
        )

    if not _has_line_correlation(files, error_locations) and value > 70:
        value -= NO_LINE_MATCH_PENALTY
        penalties.append(
            "No line number correlation with error trace "
            f"(-{NO_LINE_MATCH_PENALTY}%)"
        )

    if files and files[0]:
        role = classify_file_role(files[0])
        if not is_role_appropriate_for_category(role, analysis.category):
            value -= ROLE_MISMATCH_PENALTY
            penalties.append(
                f"File role mismatch: {role} file suggested for "
                f"{analysis.category} bug (-{ROLE_MISMATCH_PENALTY}%)"
            )
            if role == FileRole.ANALYTICS:
                penalties.append(
                    "Analytics/tracking files should not contain "
                    "business logic"
                )

    narrative = (
        root.explanation + _strip_calibration_note(analysis.additional_context)
    ).lower()
    if any(marker in narrative for marker in UNCERTAINTY_MARKERS):
        value = min(value, UNCERTAINTY_CAP)
        penalties.append(
            "Uncertainty markers detected in explanation "
            f"(capped at {UNCERTAINTY_CAP}%)"
        )

    verification = analysis.code_verification
    if (
        not verification.bug_exists_in_code
        and len(verification.evidence) < MIN_EVIDENCE_CHARS
    ):
        value -= WEAK_EVIDENCE_PENALTY
        penalties.append(
            "Insufficient code verification evidence "
            f"(-{WEAK_EVIDENCE_PENALTY}%)"
        )

    sv = analysis.self_validation
    if sv is not None:
        if len(sv.counter_evidence) >= 2 and value > 75:
            value -= COUNTER_EVIDENCE_PENALTY
            penalties.append(
                "Multiple counter-evidence items listed but confidence "
                f">75% (-{COUNTER_EVIDENCE_PENALTY}%)"
            )
        if len(sv.assumptions) >= 3 and value > 70:
            value -= ASSUMPTIONS_PENALTY
            penalties.append(
                "Many assumptions (3+) with high confidence "
                f"(-{ASSUMPTIONS_PENALTY}%)"
            )
        justification = sv.confidence_justification.lower()
        if (
            any(w in justification for w in WEAK_JUSTIFICATIONS)
            and "line" not in justification
            and "stack trace" not in justification
        ):
            value = min(value, WEAK_JUSTIFICATION_CAP)
            penalties.append(
                "Weak confidence justification without code evidence "
                f"(capped at {WEAK_JUSTIFICATION_CAP}%)"
            )
        alternatives = len(sv.alternative_hypotheses)
        if alternatives >= 2 and value < ALTERNATIVES_CEILING:
            value = min(value + ALTERNATIVES_BONUS, ALTERNATIVES_CEILING)
            penalties.append(
                "Well-documented alternative hypotheses "
                f"(+{ALTERNATIVES_BONUS}%)"
            )
    elif value > NO_SELF_VALIDATION_CAP:
        value = NO_SELF_VALIDATION_CAP
        penalties.append(
            "No self-validation provided "
            f"(capped at {NO_SELF_VALIDATION_CAP}%)"
        )

    explanation = root.explanation.lower()
    generic_count = sum(1 for p in GENERIC_PHRASES if p in explanation)
    if generic_count >= 2 and value > GENERIC_ANSWER_CAP:
        value = GENERIC_ANSWER_CAP
        penalties.append(
            f"Generic/vague explanation detected ({generic_count} generic "
            f"phrases, capped at {GENERIC_ANSWER_CAP}%)"
        )

    calibrated = max(0, min(100, round(value)))
    return ConfidenceCalibration(
        original=original,
        calibrated=calibrated,
        penalties=penalties,
        was_calibrated=calibrated != original,
    )


def calibrate_all_analyses(
    analyses: Sequence[AnalysisToVerify],
    error_locations: Sequence[ErrorLocation] = (),
) -> tuple[list[AnalysisToVerify], list[ConfidenceCalibration]]:
    """Calibrate every analysis and note the adjustment in its context.

    Returns copies with the calibrated confidence, plus one calibration
    record per analysis. Any earlier calibration note is replaced.
    """
    calibrated: list[AnalysisToVerify] = []
    reports: list[ConfidenceCalibration] = []
    for analysis in analyses:
        result = calibrate_confidence(analysis, error_locations)
        reports.append(result)

        context = analysis.additional_context
        if result.was_calibrated:
            note = (
                f"{_CALIBRATION_NOTE} Original {result.original:g}% -> "
                f"Adjusted {result.calibrated}%"
            )
            if result.penalties:
                note += "\n- " + "\n- ".join(result.penalties)
            base = _strip_calibration_note(context)
            context = f"{base}\n\n{note}" if base else note

        calibrated.append(
            analysis.model_copy(
                update={
                    "confidence": result.calibrated,
                    "additional_context": context,
                }
            )
        )
        if result.was_calibrated:
            logger.info(
                "event=confidence_calibrated original=%s calibrated=%d "
                "rules=%d",
                result.original,
                result.calibrated,
                len(result.penalties),
            )
    return calibrated, reports
