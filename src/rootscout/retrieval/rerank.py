"""Optional LLM re-ranking of file candidates.

A cheap model reads short summaries of the top candidates and scores
them against the bug report. Any failure (network, open circuit,
unparsable answer) leaves the ranking exactly as it was.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

import litellm
from circuitbreaker import (  # pyright: ignore[reportUnknownVariableType]
    CircuitBreaker,
    CircuitBreakerError,
)
from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    TypeAdapter,
    ValidationError,
)

from rootscout.constants import (
    CB_LLM_FAILURE_THRESHOLD,
    CB_LLM_RECOVERY_TIMEOUT,
    FILE_SUMMARY_MAX_CHARS,
    RERANK_BODY_CHARS,
    RERANK_LLM_WEIGHT,
    RERANK_MAX_OUTPUT_TOKENS,
    RERANK_MIN_CANDIDATES,
    RERANK_MIN_FILES,
    RERANK_MIN_SUMMARY_CHARS,
    RERANK_SCORE_SCALE,
    RERANK_TEMPERATURE,
)
from rootscout.retrieval.schemas import FileCandidate

logger = logging.getLogger(__name__)

# litellm stubs have partially unknown types, typed alias
if TYPE_CHECKING:
    _acompletion: Callable[..., Coroutine[Any, Any, Any]]
else:
    _acompletion = litellm.acompletion

_DECLARATION_PREFIXES = (
    "function ",
    "class ",
    "const ",
    "interface ",
    "type ",
)


class RerankItem(BaseModel):
    """One entry of the model's ranking answer."""

    path: str
    score: float = Field(validation_alias=AliasChoices("score", "newScore"))
    reason: str = ""


_RERANK_ADAPTER = TypeAdapter(list[RerankItem])


def extract_file_summary(
    file_path: str, max_chars: int = FILE_SUMMARY_MAX_CHARS
) -> str:
    """Summarize a file by its exports, declarations and imports.

    Looks at the first 50 lines only. Falls back to the head of the
    file when nothing structural is found; unreadable files give "".
    """
    try:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            content = f.read()
    except OSError:
        return ""

    imports: list[str] = []
    exports: list[str] = []
    declarations: list[str] = []
    for line in content.split("\n")[:50]:
        trimmed = line.strip()
        if trimmed.startswith("import ") or (
            trimmed.startswith("const ") and "require(" in trimmed
        ):
            imports.append(trimmed)
        elif trimmed.startswith("export "):
            exports.append(trimmed)
        elif trimmed.startswith(_DECLARATION_PREFIXES):
            declarations.append(trimmed)

    parts = [*exports[:5], *declarations[:10], *imports[:3]]
    summary = "\n".join(parts)[:max_chars]
    if len(summary) >= max_chars:
        summary = summary[: max_chars - 3] + "..."
    return summary or content[:max_chars]


# Per-model circuit breaker registry
_breaker_registry: dict[str, CircuitBreaker] = {}  # pyright: ignore[reportUnknownVariableType]


def _get_breaker(model: str) -> CircuitBreaker:  # pyright: ignore[reportUnknownParameterType]
    """Get or create a circuit breaker for the given model."""
    if model not in _breaker_registry:
        _breaker_registry[model] = CircuitBreaker(  # pyright: ignore[reportUnknownMemberType]
            failure_threshold=CB_LLM_FAILURE_THRESHOLD,
            recovery_timeout=CB_LLM_RECOVERY_TIMEOUT,
            name=f"rerank_{model}",
        )
    return _breaker_registry[model]


async def _complete(model: str, prompt: str, timeout: int) -> str:
    """Single circuit-breaker-guarded completion. No retries."""
    breaker = _get_breaker(model)
    if breaker.opened:  # pyright: ignore[reportUnknownMemberType]
        raise CircuitBreakerError(breaker)  # pyright: ignore[reportUnknownArgumentType]
    with breaker:  # pyright: ignore[reportUnknownMemberType]
        response: Any = await _acompletion(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            max_tokens=RERANK_MAX_OUTPUT_TOKENS,
            temperature=RERANK_TEMPERATURE,
        )
    return str(response.choices[0].message.content or "")


def build_rerank_prompt(
    candidates: list[tuple[str, str]], title: str, body: str
) -> str:
    """Render the ranking prompt for ``(path, summary)`` pairs."""
    listing = "\n".join(
        f"### [{i}] {path}\n```\n{summary}\n```\n"
        for i, (path, summary) in enumerate(candidates, 1)
    )
    return (
        "You are a code search expert. Given a bug report and a list of "
        "candidate files, rank them by relevance.\n\n"
        "## Bug Report\n"
        f"**Title:** {title}\n"
        f"**Description:** {body[:RERANK_BODY_CHARS]}\n\n"
        "## Candidate Files (ranked by initial search score)\n"
        f"{listing}\n"
        "## Task\n"
        "Rerank these files from MOST relevant to LEAST relevant for "
        "debugging this bug.\n"
        'Output a JSON array of objects with: {"path": "file/path", '
        '"score": 0-100, "reason": "brief reason"}\n'
        "Order by score descending. Only include files that are "
        "potentially relevant (score > 30).\n\n"
        "IMPORTANT: Output ONLY the JSON array, no markdown code blocks "
        "or explanation."
    )


def parse_rerank_response(text: str) -> list[RerankItem] | None:
    """Parse the model's JSON answer, tolerating a fenced block."""
    clean = text.strip()
    if clean.startswith("```"):
        clean = clean.split("\n", 1)[1] if "\n" in clean else ""
        if clean.rstrip().endswith("```"):
            clean = clean.rstrip()[:-3]
    try:
        return _RERANK_ADAPTER.validate_python(json.loads(clean))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("event=rerank_parse_failed error=%s", exc)
        return None


def apply_rerank_scores(
    files: list[FileCandidate], items: list[RerankItem]
) -> list[FileCandidate]:
    """Blend model scores into relevance and re-sort.

    Model scores (0-100) are doubled onto the heuristic scale, then
    weighted 70/30 against the existing relevance score.
    """
    scores = {item.path: item.score * RERANK_SCORE_SCALE for item in items}
    reranked: list[FileCandidate] = []
    for f in files:
        llm_score = scores.get(f.path)
        if llm_score is None:
            reranked.append(f)
            continue
        reranked.append(
            f.model_copy(
                update={
                    "relevance_score": math.floor(
                        llm_score * RERANK_LLM_WEIGHT
                        + f.relevance_score * (1 - RERANK_LLM_WEIGHT)
                    ),
                    "matched_keywords": [
                        *f.matched_keywords,
                        "llm-reranked",
                    ],
                }
            )
        )
    reranked.sort(key=lambda f: f.relevance_score, reverse=True)
    return reranked


async def rerank_files_with_llm(
    files: list[FileCandidate],
    title: str,
    body: str,
    *,
    model: str,
    max_candidates: int = 15,
    timeout: int = 30,
) -> list[FileCandidate]:
    """Re-rank ``files`` with an LLM, or return them unchanged."""
    if len(files) < RERANK_MIN_FILES:
        return files

    candidates = [
        (f.path, summary)
        for f in files[:max_candidates]
        if len(summary := extract_file_summary(f.path))
        > RERANK_MIN_SUMMARY_CHARS
    ]
    if len(candidates) < RERANK_MIN_CANDIDATES:
        return files

    prompt = build_rerank_prompt(candidates, title, body)
    try:
        text = await _complete(model, prompt, timeout)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "event=rerank_failed model=%s error=%s: %s",
            model,
            type(exc).__name__,
            exc,
        )
        return files

    items = parse_rerank_response(text)
    if not items:
        return files
    return apply_rerank_scores(files, items)
