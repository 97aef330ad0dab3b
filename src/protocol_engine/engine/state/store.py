"""JSON-file persistence for active executions and their history.

Two documents live in the data directory:

- ``active-protocols.json``: array of active-execution snapshots
- ``protocol-history.json``: array of archived snapshots plus ``completedAt``
  and ``success``

Every mutation is a full load-modify-store cycle with an atomic whole-document
replace. There is no locking: a single writer process is assumed.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from protocol_engine.engine.protocols.active import ActiveProtocol, FileCheck, parse_timestamp
from protocol_engine.engine.protocols.models import ProtocolDefinition

logger = logging.getLogger(__name__)

ACTIVE_PROTOCOLS_FILENAME = "active-protocols.json"
HISTORY_FILENAME = "protocol-history.json"
DEFAULT_MAX_AGE = timedelta(hours=24)
RECENT_HISTORY_LIMIT = 5


class ActiveProtocolRecord(BaseModel):
    """Persisted snapshot of an active execution."""

    id: str
    protocolId: str
    context: dict[str, Any] = Field(default_factory=dict)
    startedAt: str
    completedSteps: list[str] = Field(default_factory=list)
    stepResults: dict[str, Any] = Field(default_factory=dict)


class HistoryRecord(ActiveProtocolRecord):
    completedAt: str
    success: bool = True


class ProtocolStatistics(BaseModel):
    totalExecutions: int
    activeProtocols: int
    successRate: float
    recentProtocols: list[dict[str, Any]] = Field(default_factory=list)


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds")


class ProtocolStateStore:
    """Durable mirror of the engine's active set plus an append-only history."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.active_protocols_file = data_dir / ACTIVE_PROTOCOLS_FILENAME
        self.history_file = data_dir / HISTORY_FILENAME
        self.initialize()

    def initialize(self) -> None:
        """Create the data directory and empty documents if missing."""

        self.data_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.active_protocols_file, self.history_file):
            if not path.exists():
                self._write(path, [])
        logger.info("Protocol state store initialized", extra={"path": str(self.data_dir)})

    # -- raw document access -------------------------------------------------

    def _read(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning(
                "State document is not valid JSON; treating as empty",
                extra={"path": str(path)},
            )
            return []
        if not isinstance(raw, list):
            logger.warning(
                "State document has unexpected shape; treating as empty",
                extra={"path": str(path)},
            )
            return []
        return [item for item in raw if isinstance(item, dict)]

    def _write(self, path: Path, items: list[dict[str, Any]]) -> None:
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp.write_text(json.dumps(items, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            tmp.replace(path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    # -- active executions ---------------------------------------------------

    def save_active_protocol(self, active: ActiveProtocol) -> None:
        """Insert or replace the snapshot with the execution's id."""

        record = ActiveProtocolRecord.model_validate(active.to_json()).model_dump(mode="json")
        items = self._read(self.active_protocols_file)
        for index, item in enumerate(items):
            if item.get("id") == active.id:
                items[index] = record
                break
        else:
            items.append(record)
        self._write(self.active_protocols_file, items)

    update_active_protocol = save_active_protocol

    def load_active_records(self) -> list[ActiveProtocolRecord]:
        records: list[ActiveProtocolRecord] = []
        for item in self._read(self.active_protocols_file):
            try:
                records.append(ActiveProtocolRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed active protocol record",
                    extra={"path": str(self.active_protocols_file), "error": str(e)},
                )
        return records

    def load_active_protocols(
        self,
        catalog: Mapping[str, ProtocolDefinition],
        *,
        file_check: FileCheck | None = None,
    ) -> list[ActiveProtocol]:
        """Rebuild persisted executions whose protocol is present in ``catalog``.

        Records for other protocols stay on disk untouched.
        """

        restored: list[ActiveProtocol] = []
        for record in self.load_active_records():
            protocol = catalog.get(record.protocolId)
            if protocol is None:
                logger.debug(
                    "Leaving active protocol unbound",
                    extra={"active_id": record.id, "protocol_id": record.protocolId},
                )
                continue
            try:
                active = ActiveProtocol.from_json(
                    record.model_dump(mode="json"), protocol, file_check=file_check
                )
            except ValueError:
                logger.warning(
                    "Skipping active protocol with unparseable start time",
                    extra={"active_id": record.id, "started_at": record.startedAt},
                )
                continue
            restored.append(active)
        return restored

    # -- history -------------------------------------------------------------

    def load_history(self) -> list[dict[str, Any]]:
        return self._read(self.history_file)

    def complete_protocol(self, active_id: str, success: bool = True) -> bool:
        """Move one execution from the active document to the history.

        Returns False (and changes nothing) if ``active_id`` is not persisted.
        """

        items = self._read(self.active_protocols_file)
        entry = next((item for item in items if item.get("id") == active_id), None)
        if entry is None:
            return False

        # A retry after a failed active-document write replaces its earlier entry.
        history = [h for h in self.load_history() if h.get("id") != active_id]
        history.append({**entry, "completedAt": _utc_now_iso(), "success": success})
        self._write(self.history_file, history)

        remaining = [item for item in items if item.get("id") != active_id]
        self._write(self.active_protocols_file, remaining)
        logger.info(
            "Protocol archived to history", extra={"active_id": active_id, "success": success}
        )
        return True

    def get_protocol_statistics(self) -> ProtocolStatistics:
        history = self.load_history()
        active = self._read(self.active_protocols_file)

        success_rate = 0.0
        if history:
            succeeded = sum(1 for h in history if h.get("success"))
            success_rate = round(succeeded / len(history) * 100, 1)

        return ProtocolStatistics(
            totalExecutions=len(history),
            activeProtocols=len(active),
            successRate=success_rate,
            recentProtocols=list(reversed(history[-RECENT_HISTORY_LIMIT:])),
        )

    # -- maintenance ---------------------------------------------------------

    def cleanup(
        self, max_age: timedelta = DEFAULT_MAX_AGE, *, now: datetime | None = None
    ) -> list[str]:
        """Drop active executions started more than ``max_age`` ago.

        Entries with a missing or unparseable start time are dropped too. The
        document is rewritten only if something was removed.

        Returns:
            Identifiers of the removed executions.
        """

        cutoff = (now or datetime.now(tz=UTC)) - max_age
        items = self._read(self.active_protocols_file)

        kept: list[dict[str, Any]] = []
        removed: list[str] = []
        for item in items:
            started_raw = item.get("startedAt")
            try:
                started = parse_timestamp(started_raw) if isinstance(started_raw, str) else None
            except ValueError:
                started = None
            if started is not None and started > cutoff:
                kept.append(item)
            else:
                removed.append(str(item.get("id")))

        if removed:
            self._write(self.active_protocols_file, kept)
            logger.info(
                "Removed stale active protocols",
                extra={"count": len(removed), "cutoff": cutoff.isoformat()},
            )
        return removed
