"""Tests for bug report signal extraction."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from rootscout.signals.extractor import (
    build_signal_set,
    extract_error_locations,
    extract_error_messages,
    extract_keywords,
    signals_from_report,
)
from rootscout.signals.schemas import BugReport, ConsoleLog
from tests.conftest import REPORT_TEXT

NODE_TRACE = """\
TypeError: Cannot read properties of undefined (reading 'map')
    at renderList (src/components/UserList.tsx:42:15)
    at App (src/App.tsx:10:3)
"""


class TestErrorLocations:
    def test_node_stack_frames(self) -> None:
        locations = extract_error_locations(NODE_TRACE)
        assert [loc.file for loc in locations] == ["UserList.tsx", "App.tsx"]
        first = locations[0]
        assert first.line == 42
        assert first.column == 15
        assert first.function_name == "renderList"

    def test_same_file_reported_once(self) -> None:
        """The generic pattern does not re-add a file a frame claimed."""
        locations = extract_error_locations(NODE_TRACE)
        assert len(locations) == 2

    def test_firefox_frame(self) -> None:
        text = "renderList@src/components/List.js:12:5"
        locations = extract_error_locations(text)
        assert len(locations) == 1
        assert locations[0].file == "List.js"
        assert locations[0].function_name == "renderList"
        assert locations[0].line == 12

    def test_python_frame(self) -> None:
        text = (
            'File "/app/server/handlers.py", line 88, in handle_request'
        )
        locations = extract_error_locations(text)
        assert len(locations) == 1
        assert locations[0].file == "handlers.py"
        assert locations[0].line == 88
        assert locations[0].function_name == "handle_request"

    def test_generic_file_line(self) -> None:
        locations = extract_error_locations("see utils/date.ts:7:2")
        assert locations[0].file == "date.ts"
        assert locations[0].line == 7
        assert locations[0].column == 2

    def test_webpack_path_without_line(self) -> None:
        locations = extract_error_locations(
            "webpack:///./src/utils/format.ts?abc"
        )
        assert len(locations) == 1
        assert locations[0].file == "format.ts"
        assert locations[0].line is None

    def test_no_trace(self) -> None:
        assert extract_error_locations("the button is blue") == []
        assert extract_error_locations("") == []


class TestErrorMessages:
    def test_type_error_message(self) -> None:
        messages = extract_error_messages(NODE_TRACE)
        assert (
            "Cannot read properties of undefined (reading 'map')"
            in messages
        )

    def test_messages_deduplicated(self) -> None:
        messages = extract_error_messages(
            "Uncaught Error: Network request failed"
        )
        assert messages.count("Network request failed") == 1

    def test_http_status(self) -> None:
        messages = extract_error_messages("500 Internal Server Error")
        assert "Internal Server Error" in messages

    def test_short_captures_dropped(self) -> None:
        assert extract_error_messages("Error: ab") == []


class TestKeywords:
    def test_paths_identifiers_and_frames(self) -> None:
        keywords = extract_keywords(NODE_TRACE)
        assert "src/components/UserList.tsx" in keywords
        assert "TypeError" in keywords
        assert "UserList.tsx" in keywords
        assert "renderList" in keywords

    def test_identifier_cap(self) -> None:
        text = " ".join(f"Widget{i}" for i in range(20))
        keywords = extract_keywords(text)
        assert len(keywords) == 15
        assert "Widget14" in keywords
        assert "Widget15" not in keywords

    def test_first_seen_order_without_duplicates(self) -> None:
        keywords = extract_keywords("UserList UserList userProfile")
        assert keywords == ["UserList", "userProfile"]


class TestSignalSet:
    def test_empty_text_gives_empty_set(self) -> None:
        signals = build_signal_set("")
        assert signals.keywords == ()
        assert signals.error_locations == ()
        assert signals.error_messages == ()
        assert signals.function_names == ()

    def test_function_names_from_frames(self) -> None:
        signals = build_signal_set(REPORT_TEXT)
        assert signals.function_names == ("renderList",)

    def test_signal_set_is_frozen(self) -> None:
        signals = build_signal_set(NODE_TRACE)
        with pytest.raises(ValidationError):
            signals.keywords = ()  # type: ignore[misc]

    def test_same_text_same_signals(self) -> None:
        assert build_signal_set(NODE_TRACE) == build_signal_set(NODE_TRACE)


class TestBugReport:
    def test_signal_text_keeps_error_console_lines(self) -> None:
        report = BugReport(
            title="Crash",
            body="It broke",
            stack_traces=["at load (src/api.ts:3:1)"],
            console_logs=[
                ConsoleLog(level="error", message="boom in fetchUser"),
                ConsoleLog(level="log", message="rendering header"),
            ],
        )
        text = report.signal_text()
        assert "boom in fetchUser" in text
        assert "rendering header" not in text
        assert text.splitlines()[0] == "Crash"

    def test_signals_from_report_sees_stack_traces(self) -> None:
        report = BugReport(
            title="Crash", stack_traces=["at load (src/api.ts:3:1)"]
        )
        signals = signals_from_report(report)
        assert signals.error_locations[0].file == "api.ts"
