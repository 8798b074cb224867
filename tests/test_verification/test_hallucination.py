"""Tests for claim checks against the code context."""

from pathlib import Path

import pytest

from rootscout.constants import CitationMatch, ClaimKind, ClaimSeverity
from rootscout.context.assembler import read_file_with_context
from rootscout.verification.hallucination import (
    LineReference,
    apply_hallucination_penalty,
    build_report,
    check_for_hallucinations,
    extract_code_citations,
    extract_line_references,
    extract_symbol_references,
    find_code_in_context,
    line_content_mentioned,
    verify_code_citations,
    verify_file_existence,
    verify_line_references,
    verify_suggested_fix,
    verify_symbol_references,
)
from rootscout.verification.schemas import (
    AnalysisToVerify,
    VerificationClaim,
    VerificationContext,
    VerificationReport,
)


@pytest.fixture
def context(ts_repo: Path) -> VerificationContext:
    """The model was shown UserList.tsx only."""
    user_list = str(ts_repo / "src/components/UserList.tsx")
    return VerificationContext(
        code_context=read_file_with_context(user_list),
        project_root=str(ts_repo),
        relevant_files=[user_list],
    )


def _claim(severity: ClaimSeverity, verified: bool = False):
    return VerificationClaim(
        kind=ClaimKind.FILE,
        claim="x",
        verified=verified,
        severity=severity,
    )


def _report(critical: int = 0, warnings: int = 0) -> VerificationReport:
    return build_report(
        [_claim(ClaimSeverity.CRITICAL)] * critical
        + [_claim(ClaimSeverity.WARNING)] * warnings
    )


class TestFileExistence:
    def test_three_outcomes(self, context: VerificationContext) -> None:
        claims = verify_file_existence(
            [
                "src/components/UserList.tsx",
                "utils/format.ts",
                "src/services/billing.ts",
            ],
            context,
        )
        assert [(c.verified, c.severity) for c in claims] == [
            (True, ClaimSeverity.INFO),
            (True, ClaimSeverity.WARNING),
            (False, ClaimSeverity.CRITICAL),
        ]
        assert claims[2].claim == "File: src/services/billing.ts"

    def test_basename_counts_as_in_context(
        self, context: VerificationContext
    ) -> None:
        claims = verify_file_existence(["UserList.tsx"], context)
        assert claims[0].severity == ClaimSeverity.INFO

    def test_backslashes_and_leading_slash(
        self, context: VerificationContext
    ) -> None:
        claims = verify_file_existence(["\\src\\utils\\format.ts"], context)
        assert claims[0].verified
        assert claims[0].severity == ClaimSeverity.WARNING


class TestCodeCitations:
    def test_extraction_rules(self) -> None:
        text = (
            "In `src/utils/format.ts` and `UserList.tsx` we see "
            "`users.map((u) => formatName(u))` and `short`.\n"
            "```ts\nconst value = `template ${x}`;\n```"
        )
        assert extract_code_citations(text) == [
            "const value = `template ${x}`;",
            "users.map((u) => formatName(u))",
        ]

    def test_short_fenced_block_ignored(self) -> None:
        assert extract_code_citations("```\nx = 1\n```") == []

    def test_match_levels(self) -> None:
        context = "  return users.map((u) => formatName(u));\n"
        assert (
            find_code_in_context("users.map((u) => formatName(u))", context)
            == CitationMatch.EXACT
        )
        assert (
            find_code_in_context(
                "users.map( (u)  =>  formatName(u) )", context
            )
            == CitationMatch.NORMALIZED
        )
        assert (
            find_code_in_context(
                "alpha gamma beta delta epsilon theta zeta",
                "alpha beta gamma delta epsilon theta",
            )
            == CitationMatch.PARTIAL
        )
        assert (
            find_code_in_context("calculateTotal(items)", context)
            == CitationMatch.NONE
        )

    def test_verbatim_citation_verified(
        self, context: VerificationContext
    ) -> None:
        claims = verify_code_citations(
            "The crash is in `users.map((u) => formatName(u))`.", context
        )
        assert len(claims) == 1
        assert claims[0].verified
        assert claims[0].severity == ClaimSeverity.INFO
        assert claims[0].detail == "Code found in context (exact match)"

    def test_fabricated_function_is_critical(
        self, context: VerificationContext
    ) -> None:
        claims = verify_code_citations(
            "```ts\nconst total = calculateTotal(items);\n```", context
        )
        assert len(claims) == 1
        assert not claims[0].verified
        assert claims[0].severity == ClaimSeverity.CRITICAL

    def test_long_claim_text_is_shortened(
        self, context: VerificationContext
    ) -> None:
        citation = "const " + "x" * 100 + " = 1;"
        claims = verify_code_citations(f"```\n{citation}\n```", context)
        assert claims[0].claim == citation[:80] + "..."


class TestLineReferences:
    def test_extraction(self) -> None:
        text = (
            "See UserList.tsx:9, also UserList.tsx: line 9 and "
            "line 13 of UserList.tsx; ignore App.tsx:0."
        )
        assert extract_line_references(text) == [
            LineReference("UserList.tsx", 9),
            LineReference("UserList.tsx", 13),
        ]

    def test_mentioned_heuristics(self) -> None:
        assert line_content_mentioned("}", "", "nothing")
        assert line_content_mentioned(
            "return users.map(fn);", "", "it calls return users.map(fn);"
        )
        assert line_content_mentioned(
            "const items = renderList(users);",
            "",
            "renderList gets undefined users",
        )
        assert not line_content_mentioned(
            "const items = renderList(users);", "", "the button is blue"
        )

    def test_line_checks(self, context: VerificationContext) -> None:
        claims = verify_line_references(
            "UserList.tsx:9 calls users.map while users is undefined. "
            "UserList.tsx:2 is also odd. Details in UserList.tsx:400 "
            "and Other.tsx:3.",
            "",
            context,
        )
        by_ref = {c.claim: c for c in claims}

        assert by_ref["UserList.tsx:9"].verified
        assert by_ref["UserList.tsx:9"].severity == ClaimSeverity.INFO

        assert by_ref["UserList.tsx:2"].verified
        assert by_ref["UserList.tsx:2"].severity == ClaimSeverity.WARNING

        assert not by_ref["UserList.tsx:400"].verified
        assert by_ref["UserList.tsx:400"].severity == ClaimSeverity.CRITICAL
        assert "exceeds file length (16 lines)" in (
            by_ref["UserList.tsx:400"].detail
        )

        assert not by_ref["Other.tsx:3"].verified
        assert by_ref["Other.tsx:3"].severity == ClaimSeverity.WARNING

    def test_unreadable_file_is_warning(self, tmp_path: Path) -> None:
        context = VerificationContext(
            code_context="",
            project_root=str(tmp_path),
            relevant_files=[str(tmp_path / "Gone.tsx")],
        )
        claims = verify_line_references("Gone.tsx:3", "", context)
        assert not claims[0].verified
        assert claims[0].severity == ClaimSeverity.WARNING


class TestSymbols:
    def test_extraction_skips_prose_and_builtins(self) -> None:
        text = (
            "The renderList( call in UserList throws an Error. "
            "if (x) return Promise.resolve()"
        )
        assert extract_symbol_references(text) == [
            "renderList",
            "resolve",
            "UserList",
        ]

    def test_emphasized_missing_symbol_warns(
        self, context: VerificationContext
    ) -> None:
        claims = verify_symbol_references(
            "fetchUsers() is never awaited, so fetchUsers() resolves "
            "late. renderList() runs first and renderList() maps users. "
            "`UserCache` holds stale data. Cache is mentioned once.",
            context,
        )
        assert [(c.claim, c.severity) for c in claims] == [
            ("fetchUsers", ClaimSeverity.WARNING),
            ("UserCache", ClaimSeverity.WARNING),
        ]


class TestSuggestedFix:
    def test_missing_before_code_is_critical(
        self, context: VerificationContext
    ) -> None:
        analysis = AnalysisToVerify.model_validate({
            "suggestedFix": {
                "codeChanges": [
                    {
                        "file": "src/components/UserList.tsx",
                        "before": "return users.forEach(render);",
                        "after": "return (users ?? []).map(render);",
                    }
                ]
            }
        })
        claims = verify_suggested_fix(analysis, context)
        assert claims[0].severity == ClaimSeverity.INFO
        assert claims[1].failed_critical
        assert claims[1].claim == (
            "Before code in src/components/UserList.tsx"
        )

    def test_found_before_code_adds_no_claim(
        self, context: VerificationContext
    ) -> None:
        analysis = AnalysisToVerify.model_validate({
            "suggestedFix": {
                "codeChanges": [
                    {
                        "file": "src/components/UserList.tsx",
                        "before": "return users.map((u) => formatName(u));",
                        "after": "return (users ?? []).map(formatName);",
                    }
                ]
            }
        })
        assert len(verify_suggested_fix(analysis, context)) == 1


class TestReport:
    def test_all_verified(self, context: VerificationContext) -> None:
        analysis = AnalysisToVerify.model_validate({
            "confidence": 85,
            "rootCause": {
                "affectedFiles": ["src/components/UserList.tsx"],
                "explanation": (
                    "UserList.tsx:9 calls users.map while users is "
                    "undefined."
                ),
            },
            "codeVerification": {
                "bugExistsInCode": True,
                "evidence": "`users.map((u) => formatName(u))`",
            },
        })
        report = check_for_hallucinations(analysis, context)
        assert report.is_valid
        assert report.score == 100
        assert report.summary == "All claims verified against code context"

    def test_combined_fabrications(
        self, context: VerificationContext
    ) -> None:
        analysis = AnalysisToVerify.model_validate({
            "confidence": 95,
            "rootCause": {
                "affectedFiles": ["src/services/billing.ts"],
                "explanation": "The crash is at UserList.tsx:400.",
            },
            "codeVerification": {
                "evidence": "```ts\nconst total = calculateTotal(items);\n```"
            },
        })
        report = check_for_hallucinations(analysis, context)
        assert not report.is_valid
        assert report.score < 50
        assert len(report.critical_failures) == 3
        assert report.summary.startswith("3 critical hallucination(s)")

    def test_score_arithmetic(self) -> None:
        assert _report(critical=1, warnings=2).score == 55
        assert _report(critical=5).score == 0
        assert _report(warnings=1).summary.startswith("1 unverified claim")
        assert _report(warnings=1).is_valid

    def test_verified_warnings_do_not_count(self) -> None:
        report = build_report([_claim(ClaimSeverity.WARNING, verified=True)])
        assert report.score == 100
        assert report.warning_failures == []


class TestPenalty:
    def test_critical_caps_high_confidence(self) -> None:
        result = apply_hallucination_penalty(95, _report(critical=1))
        assert result.confidence == 30
        assert result.penalties[0].startswith(
            "Hallucination detected: 1 critical"
        )
        assert result.penalties[1] == "   - file: x"

    def test_critical_keeps_lower_confidence(self) -> None:
        assert apply_hallucination_penalty(
            20, _report(critical=1)
        ).confidence == 20

    def test_warning_penalty_capped(self) -> None:
        result = apply_hallucination_penalty(90, _report(warnings=5))
        assert result.confidence == 60
        assert result.penalties == ["5 unverified reference(s) (-30%)"]

    def test_critical_and_warnings(self) -> None:
        result = apply_hallucination_penalty(
            95, _report(critical=4, warnings=1)
        )
        assert result.confidence == 20
        # only the first three critical claims are listed
        assert len(result.penalties) == 1 + 3 + 1

    def test_clean_report_unchanged(self) -> None:
        result = apply_hallucination_penalty(72.4, _report())
        assert result.confidence == 72
        assert result.penalties == []
