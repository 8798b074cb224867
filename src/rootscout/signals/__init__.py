"""Signal extraction: bug report text to keywords, locations, messages."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from rootscout.signals.extractor import (
    build_signal_set,
    extract_error_locations,
    extract_error_messages,
    extract_keywords,
    signals_from_report,
)
from rootscout.signals.schemas import (
    BugReport,
    ConsoleLog,
    ErrorLocation,
    SignalSet,
)

__all__ = [
    "BugReport",
    "ConsoleLog",
    "ErrorLocation",
    "SignalSet",
    "build_signal_set",
    "extract_error_locations",
    "extract_error_messages",
    "extract_keywords",
    "load_bug_report",
    "signals_from_report",
]

logger = logging.getLogger(__name__)


def load_bug_report(path: Path) -> BugReport:
    """Load a bug report from a JSON document or plain text file.

    JSON objects are validated as :class:`BugReport`; anything else
    becomes the report body. Raises OSError if the file is unreadable.
    """
    raw = path.read_text(encoding="utf-8", errors="replace")
    if path.suffix.lower() == ".json":
        try:
            return BugReport.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "event=report_parse_failed path=%s error=%s", path, exc
            )
    return BugReport(title=path.stem, body=raw)
