"""The runtime state machine of one in-progress protocol run.

An execution has no explicit status field. It is complete when every step of
its protocol is in the completed set, after conditional steps that evaluate
false have been auto-skipped during next-step lookup.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from protocol_engine.engine.errors import UnknownStepError

from .models import (
    Conditional,
    Context,
    ContextKey,
    CustomCondition,
    FileExists,
    ProtocolDefinition,
    ProtocolStep,
)

logger = logging.getLogger(__name__)

FileCheck = Callable[[ProtocolStep, dict[str, Any]], bool]


@dataclass(frozen=True, slots=True)
class Progress:
    total: int
    completed: int
    current_index: int

    def to_json(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "currentIndex": self.current_index,
        }


def new_active_id(protocol_id: str) -> str:
    """Identifier for a new execution: protocol id, epoch millis, random suffix."""

    return f"{protocol_id}_{time.time_ns() // 1_000_000}_{uuid.uuid4().hex[:8]}"


def utc_now_millis() -> datetime:
    """Current UTC time truncated to the resolution the store persists."""

    now = datetime.now(tz=UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def parse_timestamp(value: str) -> datetime:
    """Parse a persisted ISO timestamp; naive values are taken as UTC."""

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def evaluate_condition(
    condition: Conditional,
    step: ProtocolStep,
    context: Context,
    *,
    file_check: FileCheck | None = None,
) -> bool:
    if isinstance(condition, FileExists):
        return True if file_check is None else file_check(step, context)
    if isinstance(condition, ContextKey):
        return bool(context.get(condition.name))
    if isinstance(condition, CustomCondition):
        return True
    raise TypeError(f"Unsupported conditional: {condition!r}")


class ActiveProtocol:
    """One run of a protocol: which steps are done and what they produced."""

    def __init__(
        self,
        protocol: ProtocolDefinition,
        context: Context | None = None,
        *,
        active_id: str | None = None,
        started_at: datetime | None = None,
        file_check: FileCheck | None = None,
    ) -> None:
        self.protocol = protocol
        self.id = active_id or new_active_id(protocol.id)
        self.context: Context = dict(context or {})
        self.started_at = started_at or utc_now_millis()
        self.completed_steps: set[str] = set()
        self.step_results: dict[str, Any] = {}
        self._file_check = file_check

    def get_next_step(self) -> ProtocolStep | None:
        """Return the first pending step in definition order.

        Conditional steps whose condition is false are marked completed as a
        side effect and skipped. Returns None once every step is completed.
        """

        for step in self.protocol.steps:
            if step.id in self.completed_steps:
                continue
            if step.conditional is not None and not evaluate_condition(
                step.conditional, step, self.context, file_check=self._file_check
            ):
                logger.debug(
                    "Skipping conditional step",
                    extra={"active_id": self.id, "step_id": step.id},
                )
                self.completed_steps.add(step.id)
                continue
            return step
        return None

    def complete_step(self, step_id: str, result: Any = None) -> None:
        """Mark ``step_id`` completed, recording ``result`` when given.

        Completing a step twice is allowed; a later result replaces the earlier one.

        Raises:
            UnknownStepError: the protocol has no such step.
        """

        if not self.protocol.has_step(step_id):
            raise UnknownStepError(protocol_id=self.protocol.id, step_id=step_id)
        self.completed_steps.add(step_id)
        if result is not None:
            self.step_results[step_id] = result

    def is_step_complete(self, step_id: str) -> bool:
        return step_id in self.completed_steps

    def is_complete(self) -> bool:
        return self.get_next_step() is None

    def current_index(self) -> int:
        for index, step in enumerate(self.protocol.steps):
            if step.id not in self.completed_steps:
                return index
        return len(self.protocol.steps)

    def get_progress(self) -> Progress:
        return Progress(
            total=len(self.protocol.steps),
            completed=len(self.completed_steps),
            current_index=self.current_index(),
        )

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "protocolId": self.protocol.id,
            "context": dict(self.context),
            "startedAt": self.started_at.isoformat(timespec="milliseconds"),
            "completedSteps": sorted(self.completed_steps),
            "stepResults": dict(self.step_results),
        }

    @staticmethod
    def from_json(
        obj: dict[str, Any],
        protocol: ProtocolDefinition,
        *,
        file_check: FileCheck | None = None,
    ) -> ActiveProtocol:
        """Rebuild an execution from its snapshot.

        The snapshot carries only the protocol id, so the definition must be
        supplied by the caller.
        """

        started_raw = obj.get("startedAt")
        started_at = parse_timestamp(started_raw) if isinstance(started_raw, str) else None
        context_raw = obj.get("context")
        active = ActiveProtocol(
            protocol,
            context_raw if isinstance(context_raw, dict) else {},
            active_id=str(obj["id"]),
            started_at=started_at,
            file_check=file_check,
        )
        active.completed_steps = set(obj.get("completedSteps") or [])
        active.step_results = dict(obj.get("stepResults") or {})
        return active
