"""Factory for building a configured protocol engine."""

from __future__ import annotations

import logging

from protocol_engine.engine.config import EngineSettings
from protocol_engine.engine.protocols.active import FileCheck
from protocol_engine.engine.protocols.catalog import BUILTIN_PROTOCOLS, load_catalog_file
from protocol_engine.engine.protocols.engine import ProtocolEngine
from protocol_engine.engine.protocols.models import ProtocolDefinition
from protocol_engine.engine.state.store import ProtocolStateStore

logger = logging.getLogger(__name__)


class EngineFactory:
    """Factory for creating protocol engine instances."""

    @staticmethod
    def load_catalog(settings: EngineSettings) -> list[ProtocolDefinition]:
        """Collect the protocol definitions enabled by ``settings``.

        Definitions from the catalog file come after the built-ins, so a file
        entry replaces a built-in with the same id.

        Raises:
            CatalogError: the catalog file is invalid.
        """
        protocols: list[ProtocolDefinition] = []
        if settings.include_builtin_protocols:
            protocols.extend(BUILTIN_PROTOCOLS)
        if settings.catalog_path is not None:
            extra = load_catalog_file(settings.catalog_path)
            logger.info(
                "Loaded protocol catalog file",
                extra={"path": str(settings.catalog_path), "count": len(extra)},
            )
            protocols.extend(extra)
        return protocols

    @staticmethod
    def create(settings: EngineSettings, *, file_check: FileCheck | None = None) -> ProtocolEngine:
        """Create an engine backed by the store in ``settings.data_dir``.

        Args:
            settings: Engine configuration.
            file_check: Optional predicate for ``file_exists`` conditionals.

        Returns:
            Engine with its catalog registered and persisted runs restored.
        """
        store = ProtocolStateStore(settings.data_dir)
        return ProtocolEngine(
            store, EngineFactory.load_catalog(settings), file_check=file_check
        )
