"""Markdown rendering of a verification report."""

from __future__ import annotations

from rootscout.constants import ClaimSeverity
from rootscout.verification.schemas import (
    ConfidenceCalibration,
    VerificationReport,
)


def format_verification_report(report: VerificationReport) -> str:
    """Status, score, failed claims, then passed claims collapsed."""
    lines = [
        "## Hallucination Check Report",
        "",
        f"**Status:** {report.summary}",
        f"**Verification Score:** {report.score}/100",
        "",
    ]

    failed = [c for c in report.claims if not c.verified]
    if failed:
        lines.extend(["### Failed Verifications", ""])
        for claim in failed:
            label = (
                "CRITICAL"
                if claim.severity == ClaimSeverity.CRITICAL
                else "WARNING"
            )
            lines.append(f"- [{label}] **{claim.kind}**: `{claim.claim}`")
            lines.append(f"  {claim.detail}")
        lines.append("")

    passed = [c for c in report.claims if c.verified]
    if passed:
        lines.append("<details>")
        lines.append(
            f"<summary>Passed Verifications ({len(passed)})</summary>"
        )
        lines.append("")
        lines.extend(f"- **{c.kind}**: `{c.claim}`" for c in passed)
        lines.append("</details>")

    return "\n".join(lines)


def format_calibration(calibration: ConfidenceCalibration) -> str:
    """One-paragraph summary of a calibration result."""
    head = (
        f"**Confidence:** {calibration.original:g}% -> "
        f"{calibration.calibrated}%"
    )
    if not calibration.penalties:
        return head
    return head + "\n" + "\n".join(f"- {p}" for p in calibration.penalties)
