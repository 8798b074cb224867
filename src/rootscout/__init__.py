"""rootscout: bug-report retrieval and LLM claim verification."""

__version__ = "0.1.0"
