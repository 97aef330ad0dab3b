"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from protocol_engine.engine.protocols.engine import ProtocolEngine
from protocol_engine.engine.protocols.models import (
    ContextKey,
    PhraseTrigger,
    Priority,
    ProtocolDefinition,
    ProtocolMetadata,
    ProtocolStep,
)
from protocol_engine.engine.state.store import ProtocolStateStore


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Provide a temporary data directory."""
    return tmp_path / "data"


@pytest.fixture
def store(data_dir: Path) -> ProtocolStateStore:
    """Provide a store backed by the temporary data directory."""
    return ProtocolStateStore(data_dir)


@pytest.fixture
def abc_protocol() -> ProtocolDefinition:
    """Three steps; B only runs when ``context.flag`` is truthy."""
    return ProtocolDefinition(
        id="abc",
        name="ABC Protocol",
        description="A, then optionally B, then C",
        triggers=(PhraseTrigger("run abc"),),
        steps=(
            ProtocolStep(id="a", name="Step A", command='echo "${greeting}"'),
            ProtocolStep(id="b", name="Step B", conditional=ContextKey("flag")),
            ProtocolStep(id="c", name="Step C", validation="C is done"),
        ),
        metadata=ProtocolMetadata(priority=Priority.MEDIUM, category="test"),
    )


@pytest.fixture
def engine(store: ProtocolStateStore, abc_protocol: ProtocolDefinition) -> ProtocolEngine:
    """Provide an engine with only the ABC protocol registered."""
    return ProtocolEngine(store, [abc_protocol])
