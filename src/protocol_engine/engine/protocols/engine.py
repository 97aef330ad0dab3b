"""Protocol engine: trigger detection and the active-execution lifecycle.

Flow for a caller:

1. ``detect_triggers(text, context)`` -> candidate protocols, most severe first
2. ``start_protocol(protocol_id, context)`` -> new active execution (persisted)
3. loop: ``get_next_action(active_id)``, run the command out of band, then
   ``complete_step(active_id, step_id, result)`` (persisted)
4. stop when ``get_next_action`` returns a ``complete`` action

The engine never executes commands itself.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Literal

from protocol_engine.engine.errors import ActiveProtocolNotFound, ProtocolNotFound
from protocol_engine.engine.state.store import (
    DEFAULT_MAX_AGE,
    ProtocolStateStore,
    ProtocolStatistics,
)

from .active import ActiveProtocol, FileCheck, Progress
from .models import Context, ProtocolDefinition, ProtocolStep, describe_trigger
from .rendering import format_status, format_step, format_summary, render_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NextAction:
    """What the caller should do next for an active execution.

    ``execute`` actions carry the step, its rendered command, progress and a
    display block. ``complete`` actions carry a message and a summary.
    """

    type: Literal["execute", "complete"]
    step: ProtocolStep | None = None
    command: str | None = None
    progress: Progress | None = None
    display: str | None = None
    message: str | None = None
    summary: str | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"type": self.type}
        if self.step is not None:
            out["step"] = self.step.to_json()
        if self.command is not None:
            out["command"] = self.command
        if self.progress is not None:
            out["progress"] = self.progress.to_json()
        if self.display is not None:
            out["display"] = self.display
        if self.message is not None:
            out["message"] = self.message
        if self.summary is not None:
            out["summary"] = self.summary
        return out


class ProtocolEngine:
    """Catalog of protocols plus the in-memory set of active executions.

    Every mutation of an active execution is written through to the store.
    On construction, persisted executions are re-bound to the catalog by
    protocol id; executions of protocols registered later are re-bound at
    registration time.
    """

    def __init__(
        self,
        store: ProtocolStateStore,
        protocols: Iterable[ProtocolDefinition] = (),
        *,
        file_check: FileCheck | None = None,
    ) -> None:
        self._store = store
        self._file_check = file_check
        self._protocols: dict[str, ProtocolDefinition] = {}
        self._active: dict[str, ActiveProtocol] = {}

        for protocol in protocols:
            self._protocols[protocol.id] = protocol
        self._restore_active(self._protocols)

    @property
    def store(self) -> ProtocolStateStore:
        return self._store

    def _restore_active(self, catalog: Mapping[str, ProtocolDefinition]) -> None:
        if not catalog:
            return
        restored = self._store.load_active_protocols(catalog, file_check=self._file_check)
        for active in restored:
            if active.id not in self._active:
                self._active[active.id] = active
        if restored:
            logger.info("Restored active protocols", extra={"count": len(restored)})

    # -- catalog -------------------------------------------------------------

    def register_protocol(self, protocol: ProtocolDefinition) -> None:
        """Add ``protocol`` to the catalog, replacing any with the same id."""

        self._protocols[protocol.id] = protocol
        self._restore_active({protocol.id: protocol})

    def get_protocol(self, protocol_id: str) -> ProtocolDefinition:
        protocol = self._protocols.get(protocol_id)
        if protocol is None:
            raise ProtocolNotFound(protocol_id)
        return protocol

    def detect_triggers(
        self, text: str, context: Mapping[str, Any] | None = None
    ) -> list[ProtocolDefinition]:
        """Return protocols with at least one matching trigger.

        Results are ordered critical, high, medium, low; protocols of equal
        priority keep catalog order.
        """

        normalized = text.lower()
        ctx = context or {}
        triggered = [
            protocol
            for protocol in self._protocols.values()
            if any(trigger.matches(normalized, ctx) for trigger in protocol.triggers)
        ]
        return sorted(triggered, key=lambda p: p.priority.rank)

    def list_protocols(self, category: str | None = None) -> list[dict[str, object]]:
        return [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "triggers": [describe_trigger(t) for t in p.triggers],
                "steps": len(p.steps),
                "priority": p.priority.value,
                "category": p.metadata.category,
            }
            for p in self._protocols.values()
            if category is None or p.metadata.category == category
        ]

    # -- active executions ---------------------------------------------------

    def get_active(self, active_id: str) -> ActiveProtocol:
        active = self._active.get(active_id)
        if active is None:
            raise ActiveProtocolNotFound(active_id)
        return active

    def start_protocol(
        self, protocol_id: str, context: Context | None = None
    ) -> ActiveProtocol:
        protocol = self.get_protocol(protocol_id)
        active = ActiveProtocol(protocol, context, file_check=self._file_check)
        self._active[active.id] = active
        self._store.save_active_protocol(active)
        logger.info(
            "Protocol started", extra={"protocol_id": protocol_id, "active_id": active.id}
        )
        return active

    def get_next_action(self, active_id: str) -> NextAction:
        active = self.get_active(active_id)
        step = active.get_next_step()
        if step is None:
            return NextAction(
                type="complete",
                message=f'✅ Protocol "{active.protocol.name}" completed!',
                summary=format_summary(active),
            )
        return NextAction(
            type="execute",
            step=step,
            command=render_command(step.command, active.context),
            progress=active.get_progress(),
            display=format_step(step, active.context),
        )

    def complete_step(self, active_id: str, step_id: str, result: Any = None) -> ActiveProtocol:
        active = self.get_active(active_id)
        active.complete_step(step_id, result)
        self._store.update_active_protocol(active)
        logger.info("Step completed", extra={"active_id": active_id, "step_id": step_id})
        return active

    def display_progress(self, active_id: str) -> str:
        return format_status(self.get_active(active_id))

    def list_active_protocols(self) -> list[dict[str, object]]:
        summaries: list[dict[str, object]] = []
        for active in self._active.values():
            next_step = active.get_next_step()
            summaries.append(
                {
                    "id": active.id,
                    "protocolName": active.protocol.name,
                    "startedAt": active.started_at.isoformat(timespec="milliseconds"),
                    "progress": active.get_progress().to_json(),
                    "currentStep": next_step.name if next_step is not None else "Complete",
                }
            )
        return summaries

    # -- archival and maintenance (caller-invoked) ---------------------------

    def archive_protocol(self, active_id: str, success: bool = True) -> None:
        """Move an execution out of the active set into the history."""

        active = self.get_active(active_id)
        # Skips resolved only in memory must reach the history snapshot.
        active.get_next_step()
        self._store.update_active_protocol(active)
        self._store.complete_protocol(active_id, success=success)
        del self._active[active_id]

    def cleanup(self, max_age: timedelta = DEFAULT_MAX_AGE) -> list[str]:
        removed = self._store.cleanup(max_age)
        for active_id in removed:
            self._active.pop(active_id, None)
        return removed

    def statistics(self) -> ProtocolStatistics:
        return self._store.get_protocol_statistics()
