"""Tests for the compute-once parser probe and its fallback switch."""

from unittest.mock import MagicMock, patch

import pytest

from rootscout.chunking.chunker import extract_chunks, extract_code_chunks
from rootscout.chunking.parser import (
    ParserOutcome,
    ParserProbe,
    get_parser_probe,
)
from tests.conftest import USER_LIST_TSX

_LOGGER = "rootscout.chunking.parser"


def test_missing_grammar_is_unavailable(
    regex_probe: ParserProbe, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level("WARNING", logger=_LOGGER):
        first = regex_probe.resolve()
        second = regex_probe.resolve()

    assert not first.available
    assert first.reason is not None
    assert first.reason.startswith("ModuleNotFoundError")
    assert second is first
    assert caplog.text.count("chunk_parser_unavailable") == 1


def test_missing_factory_is_unavailable() -> None:
    probe = ParserProbe("json", "no_such_language")
    outcome = probe.resolve()
    assert not outcome.available
    assert outcome.reason is not None
    assert outcome.reason.startswith("AttributeError")


def test_disable_logs_once(caplog: pytest.LogCaptureFixture) -> None:
    probe = ParserProbe("rootscout_missing_grammar", "language")
    with caplog.at_level("WARNING", logger=_LOGGER):
        probe.disable("first failure")
        probe.disable("second failure")

    assert caplog.text.count("chunk_parser_disabled") == 1
    assert probe.resolve().reason == "first failure"


@pytest.mark.asyncio
async def test_aresolve_matches_resolve(regex_probe: ParserProbe) -> None:
    outcome = await regex_probe.aresolve()
    assert not outcome.available
    assert await regex_probe.aresolve() is outcome
    assert regex_probe.resolve() is outcome


def test_process_wide_probe_is_shared() -> None:
    assert get_parser_probe() is get_parser_probe()


def test_parser_error_switches_to_regex(
    caplog: pytest.LogCaptureFixture,
) -> None:
    probe = ParserProbe("rootscout_missing_grammar", "language")
    broken = MagicMock()
    broken.parse.side_effect = RuntimeError("boom")

    with (
        patch.object(
            probe, "resolve", return_value=ParserOutcome(parser=broken)
        ),
        caplog.at_level("WARNING", logger=_LOGGER),
    ):
        chunks = extract_chunks(USER_LIST_TSX, probe)

    assert chunks == extract_code_chunks(USER_LIST_TSX)
    assert "chunk_parser_disabled" in caplog.text
    outcome = probe.resolve()
    assert not outcome.available
    assert outcome.reason == "RuntimeError: boom"
