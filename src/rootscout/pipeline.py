"""Locate-then-verify pipeline built from typed, isolated stages.

Stages run strictly in order. The only suspension points are the
parser probe and the optional LLM rerank; every other stage is
synchronous and bounded by its own caps. A failing stage logs a
warning and hands its fallback output to the next stage.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

from rootscout.chunking.parser import ParserOutcome, get_parser_probe
from rootscout.config import Settings
from rootscout.constants import ContextPolicy, StageOutcome
from rootscout.context.assembler import assemble_context
from rootscout.context.schemas import AssembledContext
from rootscout.retrieval.imports import (
    build_import_graph,
    expand_files_with_imports,
)
from rootscout.retrieval.ranker import find_relevant_files
from rootscout.retrieval.rerank import rerank_files_with_llm
from rootscout.retrieval.schemas import FileCandidate
from rootscout.signals.extractor import signals_from_report
from rootscout.signals.schemas import BugReport, ErrorLocation, SignalSet
from rootscout.verification.calibration import calibrate_confidence
from rootscout.verification.hallucination import (
    apply_hallucination_penalty,
    check_for_hallucinations,
)
from rootscout.verification.schemas import (
    AnalysisToVerify,
    ConfidenceCalibration,
    PenaltyResult,
    VerificationContext,
    VerificationReport,
)

logger = logging.getLogger(__name__)

TInput = TypeVar("TInput")
TOutput = TypeVar("TOutput")


@dataclass
class StageResult(Generic[TOutput]):
    """Outcome of a single pipeline stage execution."""

    stage_name: str
    output: TOutput | None
    duration_ms: float
    status: StageOutcome
    error: str | None = None


@dataclass
class PipelineStage(Generic[TInput, TOutput]):
    """A named, typed, async pipeline stage with error isolation.

    When ``execute`` raises, ``fallback`` (if given) supplies the
    output so downstream stages still have something to work with.
    """

    name: str
    execute: Callable[[TInput], Awaitable[TOutput]]
    fallback: Callable[[TInput], TOutput] | None = None

    async def run(
        self, input_data: TInput
    ) -> StageResult[TOutput]:
        """Execute the stage, capturing timing and errors."""
        start = time.monotonic()
        try:
            output = await self.execute(input_data)
            elapsed = (time.monotonic() - start) * 1000
            return StageResult(
                stage_name=self.name,
                output=output,
                duration_ms=elapsed,
                status=StageOutcome.COMPLETED,
            )
        except Exception as exc:
            elapsed = (time.monotonic() - start) * 1000
            logger.warning(
                "event=stage_failed stage=%s error=%s", self.name, exc
            )
            return StageResult(
                stage_name=self.name,
                output=(
                    self.fallback(input_data) if self.fallback else None
                ),
                duration_ms=elapsed,
                status=StageOutcome.FAILED,
                error=str(exc),
            )


def _skipped(name: str) -> StageResult[Any]:
    return StageResult(
        stage_name=name,
        output=None,
        duration_ms=0.0,
        status=StageOutcome.SKIPPED,
    )


@dataclass
class LocateResult:
    """Everything the locate pipeline produced for one report."""

    signals: SignalSet
    files: list[FileCandidate]
    context: AssembledContext
    stages: list[StageResult[Any]] = field(
        default_factory=lambda: list[StageResult[Any]]()
    )


async def locate(
    report: BugReport,
    root: Path,
    settings: Settings | None = None,
    *,
    policy: ContextPolicy | None = None,
    max_chars: int | None = None,
) -> LocateResult:
    """Rank files for ``report`` under ``root`` and assemble context.

    ``policy`` and ``max_chars`` override the settings for one call.
    """
    cfg = settings or Settings()
    root = Path(root)
    stages: list[StageResult[Any]] = []

    async def _signals(r: BugReport) -> SignalSet:
        return signals_from_report(r)

    signal_stage = await PipelineStage(
        "signals", _signals, lambda _: SignalSet()
    ).run(report)
    stages.append(signal_stage)
    signals = signal_stage.output or SignalSet()

    async def _rank(s: SignalSet) -> list[FileCandidate]:
        return find_relevant_files(root, s, cfg)

    rank_stage = await PipelineStage("rank", _rank, lambda _: []).run(
        signals
    )
    stages.append(rank_stage)
    files: list[FileCandidate] = rank_stage.output or []

    async def _expand(fs: list[FileCandidate]) -> list[FileCandidate]:
        graph = build_import_graph(fs, root, cfg.import_graph_max_files)
        return expand_files_with_imports(
            fs, graph, cfg.import_expansion_max
        )

    expand_stage = await PipelineStage(
        "expand_imports", _expand, lambda fs: fs
    ).run(files)
    stages.append(expand_stage)
    files = expand_stage.output or files

    if cfg.rerank_enabled:

        async def _rerank(fs: list[FileCandidate]) -> list[FileCandidate]:
            return await rerank_files_with_llm(
                fs,
                report.title,
                report.body,
                model=cfg.rerank_model,
                max_candidates=cfg.rerank_max_candidates,
                timeout=cfg.rerank_timeout_seconds,
            )

        rerank_stage = await PipelineStage(
            "rerank", _rerank, lambda fs: fs
        ).run(files)
        stages.append(rerank_stage)
        files = rerank_stage.output or files
    else:
        stages.append(_skipped("rerank"))

    probe = get_parser_probe()

    async def _probe(_: None) -> ParserOutcome:
        return await probe.aresolve()

    stages.append(await PipelineStage("parser_probe", _probe).run(None))

    async def _assemble(fs: list[FileCandidate]) -> AssembledContext:
        return assemble_context(
            fs,
            signals,
            policy=policy or cfg.context_policy,
            max_chars=max_chars or cfg.context_max_chars,
            probe=probe,
        )

    assemble_stage = await PipelineStage(
        "assemble_context", _assemble, lambda _: AssembledContext()
    ).run(files)
    stages.append(assemble_stage)
    context = assemble_stage.output or AssembledContext()

    logger.info(
        "event=locate_complete files=%d context_chars=%d stages=%s",
        len(files),
        len(context.text),
        ",".join(f"{s.stage_name}:{s.status}" for s in stages),
    )
    return LocateResult(
        signals=signals, files=files, context=context, stages=stages
    )


@dataclass
class VerificationOutcome:
    """Verification report, calibration and the final confidence."""

    report: VerificationReport
    calibration: ConfidenceCalibration
    penalty: PenaltyResult

    @property
    def confidence(self) -> int:
        return self.penalty.confidence


def verify_analysis(
    analysis: AnalysisToVerify,
    context: VerificationContext,
    error_locations: list[ErrorLocation] | tuple[ErrorLocation, ...] = (),
) -> VerificationOutcome:
    """Check claims, calibrate confidence, then apply the penalty.

    The hallucination penalty is applied on top of the calibrated
    confidence, so a critical failure always ends at 30 or below.
    """
    report = check_for_hallucinations(analysis, context)
    calibration = calibrate_confidence(analysis, error_locations)
    penalty = apply_hallucination_penalty(calibration.calibrated, report)
    return VerificationOutcome(
        report=report, calibration=calibration, penalty=penalty
    )
