"""CLI entry point: ``rootscout locate`` and ``rootscout verify``."""

from __future__ import annotations

# Phase 1: Singleton logging, before any transitive litellm imports
from rootscout.logging_config import setup_logging

setup_logging()

import argparse  # noqa: E402
import asyncio  # noqa: E402
import json  # noqa: E402
import re  # noqa: E402
import sys  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import NoReturn  # noqa: E402

from rootscout import __version__  # noqa: E402
from rootscout.config import Settings  # noqa: E402
from rootscout.constants import ContextPolicy  # noqa: E402
from rootscout.logging_config import (  # noqa: E402
    apply_log_level,
    cleanup_third_party_handlers,
)
from rootscout.signals import load_bug_report  # noqa: E402
from rootscout.signals.extractor import signals_from_report  # noqa: E402
from rootscout.signals.schemas import ErrorLocation  # noqa: E402
from rootscout.verification.schemas import (  # noqa: E402
    VerificationContext,
    parse_analysis,
)

# Phase 2: Clear litellm's duplicate handlers after all imports
cleanup_third_party_handlers()

_CONTEXT_HEADER = re.compile(r"^### (\S+)", re.MULTILINE)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"rootscout {__version__}")
        return

    settings = Settings()
    apply_log_level(settings.log_level, verbose=args.verbose)

    if args.command == "locate":
        _run_locate(args, settings)
    elif args.command == "verify":
        _run_verify(args)
    else:
        parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="rootscout",
        description=(
            "Find the code behind a bug report "
            "and check an analysis against it."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command")

    locate = sub.add_parser(
        "locate",
        help="Rank files and assemble context for a bug report",
    )
    locate.add_argument(
        "repo_path",
        type=str,
        help="Path to local repository",
    )
    locate.add_argument(
        "--report",
        "-r",
        required=True,
        help="Bug report file (JSON or plain text)",
    )
    locate.add_argument(
        "--policy",
        choices=[p.value for p in ContextPolicy],
        default=None,
        help="Context assembly policy (default: from settings)",
    )
    locate.add_argument(
        "--max-chars",
        type=int,
        default=None,
        help="Context character budget (default: from settings)",
    )
    locate.add_argument(
        "--json",
        action="store_true",
        help="Print a JSON document instead of text",
    )

    verify = sub.add_parser(
        "verify",
        help="Verify an LLM analysis against the context it was given",
    )
    verify.add_argument(
        "--analysis",
        "-a",
        required=True,
        help="Analysis JSON file",
    )
    verify.add_argument(
        "--context",
        "-c",
        required=True,
        help="Assembled context text file",
    )
    verify.add_argument(
        "--repo",
        required=True,
        help="Project root the analysis refers to",
    )
    verify.add_argument(
        "--files",
        nargs="*",
        default=None,
        help="Files included in the context (default: read from headers)",
    )
    verify.add_argument(
        "--report",
        "-r",
        default=None,
        help="Bug report file, for stack-trace line correlation",
    )
    verify.add_argument(
        "--json",
        action="store_true",
        help="Print a JSON document instead of markdown",
    )

    return parser


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(2)


def _run_locate(args: argparse.Namespace, settings: Settings) -> None:
    """Execute the locate command."""
    from rootscout.pipeline import locate

    repo_path = Path(args.repo_path).resolve()
    if not repo_path.is_dir():
        _fail(f"{repo_path} is not a directory")

    try:
        report = load_bug_report(Path(args.report))
    except OSError as exc:
        _fail(f"cannot read report {args.report}: {exc}")

    result = asyncio.run(
        locate(
            report,
            repo_path,
            settings,
            policy=ContextPolicy(args.policy) if args.policy else None,
            max_chars=args.max_chars,
        )
    )

    if args.json:
        doc = {
            "signals": result.signals.model_dump(mode="json"),
            "files": [f.model_dump(mode="json") for f in result.files],
            "context": result.context.model_dump(mode="json"),
            "stages": [
                {
                    "name": s.stage_name,
                    "status": str(s.status),
                    "duration_ms": round(s.duration_ms, 1),
                    "error": s.error,
                }
                for s in result.stages
            ],
        }
        print(json.dumps(doc, indent=2))
        return

    print(f"Ranked files ({len(result.files)}):")
    for f in result.files:
        print(
            f"  {f.relevance_score:>5}  {f.path}  "
            f"[{', '.join(f.matched_keywords[:3])}]"
        )
    print(
        f"\nContext ({result.context.policy}, "
        f"{len(result.context.text)} chars):\n"
    )
    print(result.context.text)


def _run_verify(args: argparse.Namespace) -> None:
    """Execute the verify command."""
    from rootscout.pipeline import verify_analysis
    from rootscout.verification.report import (
        format_calibration,
        format_verification_report,
    )

    try:
        raw_analysis = Path(args.analysis).read_text(encoding="utf-8")
        code_context = Path(args.context).read_text(
            encoding="utf-8", errors="replace"
        )
    except OSError as exc:
        _fail(str(exc))

    analysis = parse_analysis(raw_analysis)
    if analysis is None:
        _fail(f"{args.analysis} is not a valid analysis document")

    error_locations: tuple[ErrorLocation, ...] = ()
    if args.report:
        try:
            report = load_bug_report(Path(args.report))
        except OSError as exc:
            _fail(f"cannot read report {args.report}: {exc}")
        error_locations = signals_from_report(report).error_locations

    relevant_files = (
        args.files
        if args.files is not None
        else _CONTEXT_HEADER.findall(code_context)
    )
    context = VerificationContext(
        code_context=code_context,
        project_root=str(Path(args.repo).resolve()),
        relevant_files=relevant_files,
    )
    outcome = verify_analysis(analysis, context, error_locations)

    if args.json:
        doc = {
            "report": outcome.report.model_dump(mode="json"),
            "calibration": outcome.calibration.model_dump(mode="json"),
            "penalties": outcome.penalty.penalties,
            "confidence": outcome.confidence,
        }
        print(json.dumps(doc, indent=2))
        return

    print(format_verification_report(outcome.report))
    print()
    print(format_calibration(outcome.calibration))
    for line in outcome.penalty.penalties:
        print(f"- {line}")
    print(f"\n**Final confidence:** {outcome.confidence}%")
