"""Configuration for the protocol engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from protocol_engine.engine.state.store import ACTIVE_PROTOCOLS_FILENAME, HISTORY_FILENAME


class EngineSettings(BaseSettings):
    """Settings for the protocol engine.

    Environment variables:
    - LOG_LEVEL                          (optional)
    - PROTOCOL_ENGINE_DATA_DIR           (optional)
    - PROTOCOL_ENGINE_CATALOG_PATH       (optional)
    - PROTOCOL_ENGINE_INCLUDE_BUILTINS   (optional)
    - PROTOCOL_ENGINE_STALE_AFTER_HOURS  (optional)

    Notes:
        Tests can point at a different env file via
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    data_dir: Path = Field(
        default=Path("data"),
        validation_alias="PROTOCOL_ENGINE_DATA_DIR",
        description="Directory holding the active-protocol and history documents",
    )

    catalog_path: Path | None = Field(
        default=None,
        validation_alias="PROTOCOL_ENGINE_CATALOG_PATH",
        description="Optional JSON file with additional protocol definitions",
    )

    include_builtin_protocols: bool = Field(
        default=True,
        validation_alias="PROTOCOL_ENGINE_INCLUDE_BUILTINS",
        description="Register the built-in protocol catalog at startup",
    )

    stale_after_hours: float = Field(
        default=24.0,
        gt=0,
        validation_alias="PROTOCOL_ENGINE_STALE_AFTER_HOURS",
        description="Age after which cleanup drops an active protocol",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def active_protocols_file(self) -> Path:
        return self.data_dir / ACTIVE_PROTOCOLS_FILENAME

    @property
    def history_file(self) -> Path:
        return self.data_dir / HISTORY_FILENAME

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=self.stale_after_hours)
