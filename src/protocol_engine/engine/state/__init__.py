"""Persistence of active protocol executions and their history."""

from protocol_engine.engine.state.store import (
    ActiveProtocolRecord,
    HistoryRecord,
    ProtocolStateStore,
    ProtocolStatistics,
)

__all__ = [
    "ActiveProtocolRecord",
    "HistoryRecord",
    "ProtocolStateStore",
    "ProtocolStatistics",
]
