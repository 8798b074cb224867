"""Pydantic models for assembled LLM context."""

from pydantic import BaseModel, Field

from rootscout.constants import ContextPolicy


class AssembledContext(BaseModel):
    """Bounded code context plus the files it was built from.

    ``files`` lists the candidate paths that contributed at least one
    block, in emission order. Verification treats it as the set of
    files the model was actually shown.
    """

    text: str = ""
    files: list[str] = Field(default_factory=lambda: list[str]())
    policy: ContextPolicy = ContextPolicy.FLAT
