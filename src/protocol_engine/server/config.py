"""Configuration for the HTTP server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from protocol_engine.engine.config import EngineSettings


class ServerSettings(EngineSettings):
    """Engine settings plus HTTP-only concerns."""

    # Dev-friendly CORS. Override via PROTOCOL_ENGINE_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="PROTOCOL_ENGINE_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
