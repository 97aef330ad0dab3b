"""Error taxonomy for the protocol engine.

Identifier errors propagate to the caller. Data-shape problems (malformed
documents, unknown trigger kinds) are absorbed where they occur and never
surface here.
"""

from __future__ import annotations

from dataclasses import dataclass


class ProtocolEngineError(Exception):
    """Base class for errors raised by engine operations."""


class NotFound(ProtocolEngineError):
    """A requested protocol or active execution does not exist."""


@dataclass(eq=False)
class ProtocolNotFound(NotFound):
    protocol_id: str

    def __str__(self) -> str:
        return f"Protocol {self.protocol_id} not found"


@dataclass(eq=False)
class ActiveProtocolNotFound(NotFound):
    active_id: str

    def __str__(self) -> str:
        return f"Active protocol {self.active_id} not found"


@dataclass(eq=False)
class UnknownStepError(ProtocolEngineError):
    """Raised when completing a step that the protocol does not declare."""

    protocol_id: str
    step_id: str

    def __str__(self) -> str:
        return f"Protocol {self.protocol_id} has no step {self.step_id!r}"


class CatalogError(ProtocolEngineError):
    """A protocol definition could not be parsed."""
