"""Pydantic models for bug report input and extracted signals."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ConsoleLog(BaseModel):
    """A captured console line attached to a bug report."""

    level: str = "log"
    message: str = ""


class BugReport(BaseModel):
    """Parsed bug report handed over by the issue-parsing collaborator."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    body: str = ""
    stack_traces: list[str] = Field(default_factory=lambda: list[str]())
    console_logs: list[ConsoleLog] = Field(
        default_factory=lambda: list[ConsoleLog]()
    )

    def signal_text(self) -> str:
        """Text fed to the signal extractor.

        Title, body, stack traces and error-level console messages,
        newline-separated so line-anchored patterns stay anchored.
        """
        parts = [self.title, self.body, *self.stack_traces]
        parts.extend(
            log.message
            for log in self.console_logs
            if log.level.lower() in ("error", "fatal")
        )
        return "\n".join(p for p in parts if p)


class ErrorLocation(BaseModel):
    """A file position recovered from a stack trace or error message."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int | None = None
    column: int | None = None
    function_name: str | None = None
    context: str | None = None


class SignalSet(BaseModel):
    """Everything the retrieval stages know about a report.

    Collections are tuples in first-seen order so rankings built from
    the same report are reproducible.
    """

    model_config = ConfigDict(frozen=True)

    keywords: tuple[str, ...] = ()
    error_locations: tuple[ErrorLocation, ...] = ()
    error_messages: tuple[str, ...] = ()
    function_names: tuple[str, ...] = ()
