"""Verification: ground an LLM analysis in the context it was shown."""

from rootscout.verification.calibration import (
    calibrate_all_analyses,
    calibrate_confidence,
    classify_file_role,
    is_role_appropriate_for_category,
)
from rootscout.verification.hallucination import (
    apply_hallucination_penalty,
    build_report,
    check_for_hallucinations,
    extract_code_citations,
    extract_line_references,
    extract_symbol_references,
    find_code_in_context,
    verify_code_citations,
    verify_file_existence,
    verify_line_references,
    verify_suggested_fix,
    verify_symbol_references,
)
from rootscout.verification.report import (
    format_calibration,
    format_verification_report,
)
from rootscout.verification.schemas import (
    AnalysisToVerify,
    ConfidenceCalibration,
    PenaltyResult,
    SelfValidation,
    VerificationClaim,
    VerificationContext,
    VerificationReport,
    parse_analysis,
)

__all__ = [
    "AnalysisToVerify",
    "ConfidenceCalibration",
    "PenaltyResult",
    "SelfValidation",
    "VerificationClaim",
    "VerificationContext",
    "VerificationReport",
    "apply_hallucination_penalty",
    "build_report",
    "calibrate_all_analyses",
    "calibrate_confidence",
    "check_for_hallucinations",
    "classify_file_role",
    "extract_code_citations",
    "extract_line_references",
    "extract_symbol_references",
    "find_code_in_context",
    "format_calibration",
    "format_verification_report",
    "is_role_appropriate_for_category",
    "parse_analysis",
    "verify_code_citations",
    "verify_file_existence",
    "verify_line_references",
    "verify_suggested_fix",
    "verify_symbol_references",
]
