"""Pydantic models for LLM analysis verification."""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from rootscout.constants import ClaimKind, ClaimSeverity

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    """Accepts the analysis JSON's camelCase keys or snake_case names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class RootCause(_CamelModel):
    affected_files: list[str] = Field(default_factory=lambda: list[str]())
    explanation: str = ""


class CodeVerification(_CamelModel):
    bug_exists_in_code: bool = False
    evidence: str = ""


class CodeChange(_CamelModel):
    file: str
    before: str | None = None
    after: str = ""


class SuggestedFix(_CamelModel):
    code_changes: list[CodeChange] = Field(
        default_factory=lambda: list[CodeChange]()
    )


class SelfValidation(_CamelModel):
    """The model's own account of what could make it wrong."""

    counter_evidence: list[str] = Field(default_factory=lambda: list[str]())
    assumptions: list[str] = Field(default_factory=lambda: list[str]())
    confidence_justification: str = ""
    alternative_hypotheses: list[str] = Field(
        default_factory=lambda: list[str]()
    )


class AnalysisToVerify(_CamelModel):
    """One root-cause analysis produced by the external LLM step."""

    confidence: float = 0
    category: str = "unknown"
    root_cause: RootCause = Field(default_factory=RootCause)
    code_verification: CodeVerification = Field(
        default_factory=CodeVerification
    )
    suggested_fix: SuggestedFix = Field(default_factory=SuggestedFix)
    additional_context: str | None = None
    self_validation: SelfValidation | None = None


class VerificationContext(BaseModel):
    """What the model was shown: the context text and its files."""

    code_context: str
    project_root: str
    relevant_files: list[str] = Field(default_factory=lambda: list[str]())


class VerificationClaim(BaseModel):
    """Outcome of checking one claim against the context."""

    kind: ClaimKind
    claim: str
    verified: bool
    severity: ClaimSeverity
    detail: str = ""

    @property
    def failed_critical(self) -> bool:
        return not self.verified and self.severity == ClaimSeverity.CRITICAL

    @property
    def failed_warning(self) -> bool:
        return not self.verified and self.severity == ClaimSeverity.WARNING


class VerificationReport(BaseModel):
    """Aggregate of all claim checks for one analysis."""

    claims: list[VerificationClaim] = Field(
        default_factory=lambda: list[VerificationClaim]()
    )
    score: int = 100
    is_valid: bool = True
    summary: str = ""

    @property
    def critical_failures(self) -> list[VerificationClaim]:
        return [c for c in self.claims if c.failed_critical]

    @property
    def warning_failures(self) -> list[VerificationClaim]:
        return [c for c in self.claims if c.failed_warning]


class ConfidenceCalibration(BaseModel):
    """Confidence before and after calibration, with fired rules."""

    original: float
    calibrated: int
    penalties: list[str] = Field(default_factory=lambda: list[str]())
    was_calibrated: bool = False


class PenaltyResult(BaseModel):
    """Confidence after hallucination penalties."""

    confidence: int
    penalties: list[str] = Field(default_factory=lambda: list[str]())


def parse_analysis(raw: str) -> AnalysisToVerify | None:
    """Parse an analysis JSON document; None if it is malformed."""
    try:
        return AnalysisToVerify.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("event=analysis_parse_failed error=%s", exc)
        return None
