"""Process-wide logging setup, done in two idempotent steps.

``setup_logging()`` runs first, before litellm is imported: it points
litellm's own log level at WARNING and configures the root logger.

``cleanup_third_party_handlers()`` runs once imports are done and
removes the stream handlers litellm attaches at import time, so its
records are emitted once through the root logger.

``apply_log_level()`` runs after settings load. ``--verbose`` also
opens up the LLM client loggers behind the rerank call.
"""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

_LITELLM_LOGGERS = ("LiteLLM", "LiteLLM Router")

# HTTP/LLM client loggers used by the rerank call, held at WARNING
_QUIET_LOGGERS = (*_LITELLM_LOGGERS, "httpx", "httpcore", "openai")

_configured = False
_handlers_cleaned = False


def resolve_level(level: str) -> int:
    """Numeric level for ``level``; unknown names mean INFO."""
    value = getattr(logging, level.upper(), None)
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once; later calls are ignored."""
    global _configured  # noqa: PLW0603
    if _configured:
        return
    _configured = True

    os.environ.setdefault("LITELLM_LOG", "WARNING")

    logging.basicConfig(
        level=resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def cleanup_third_party_handlers() -> None:
    """Route litellm records through the root logger only."""
    global _handlers_cleaned  # noqa: PLW0603
    if _handlers_cleaned:
        return
    _handlers_cleaned = True

    for name in _LITELLM_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True


def apply_log_level(level: str, *, verbose: bool = False) -> None:
    """Set the root level from settings; ``verbose`` forces DEBUG."""
    logging.getLogger().setLevel(
        logging.DEBUG if verbose else resolve_level(level)
    )
    client_level = logging.DEBUG if verbose else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(client_level)
