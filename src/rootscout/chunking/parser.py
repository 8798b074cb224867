"""Shared, lazily-initialized tree-sitter parser.

The grammar is loaded at most once per process. Whatever happens on
that first attempt (a working parser or a reason it is unavailable) is
remembered and handed to every later caller. A parser that later fails
mid-parse is retired for the rest of the process.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import threading
from dataclasses import dataclass

import tree_sitter

from rootscout.config import CHUNK_GRAMMAR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParserOutcome:
    """Result of the one-time grammar probe."""

    parser: tree_sitter.Parser | None
    reason: str | None = None

    @property
    def available(self) -> bool:
        return self.parser is not None


class ParserProbe:
    """Compute-once holder for a tree-sitter parser."""

    def __init__(self, module_name: str, factory_name: str) -> None:
        self._module_name = module_name
        self._factory_name = factory_name
        self._lock = threading.Lock()
        self._outcome: ParserOutcome | None = None

    def resolve(self) -> ParserOutcome:
        """Return the remembered outcome, probing on first call."""
        outcome = self._outcome
        if outcome is not None:
            return outcome
        with self._lock:
            if self._outcome is None:
                self._outcome = self._load()
            return self._outcome

    async def aresolve(self) -> ParserOutcome:
        """Async variant; the first probe runs off the event loop."""
        if self._outcome is not None:
            return self._outcome
        return await asyncio.to_thread(self.resolve)

    def disable(self, reason: str) -> None:
        """Switch to the regex fallback for the rest of the process."""
        with self._lock:
            current = self._outcome
            if current is not None and not current.available:
                return
            self._outcome = ParserOutcome(parser=None, reason=reason)
        logger.warning(
            "event=chunk_parser_disabled grammar=%s reason=%s",
            self._module_name,
            reason,
        )

    def _load(self) -> ParserOutcome:
        try:
            mod = importlib.import_module(self._module_name)
            capsule: object = getattr(mod, self._factory_name)()
            parser = tree_sitter.Parser(tree_sitter.Language(capsule))
        except (ImportError, AttributeError, TypeError, ValueError) as exc:
            reason = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "event=chunk_parser_unavailable grammar=%s reason=%s",
                self._module_name,
                reason,
            )
            return ParserOutcome(parser=None, reason=reason)
        logger.debug(
            "event=chunk_parser_ready grammar=%s", self._module_name
        )
        return ParserOutcome(parser=parser)


_probe = ParserProbe(*CHUNK_GRAMMAR)


def get_parser_probe() -> ParserProbe:
    """The process-wide probe used by the chunk extractor."""
    return _probe
