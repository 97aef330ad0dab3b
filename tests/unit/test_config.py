"""Unit tests for settings loading."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from protocol_engine.engine.config import EngineSettings
from protocol_engine.server.config import ServerSettings

_ENV_VARS = (
    "LOG_LEVEL",
    "PROTOCOL_ENGINE_DATA_DIR",
    "PROTOCOL_ENGINE_CATALOG_PATH",
    "PROTOCOL_ENGINE_INCLUDE_BUILTINS",
    "PROTOCOL_ENGINE_STALE_AFTER_HOURS",
    "PROTOCOL_ENGINE_CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_settings_defaults() -> None:
    settings = EngineSettings()

    assert settings.log_level == "INFO"
    assert settings.data_dir == Path("data")
    assert settings.catalog_path is None
    assert settings.include_builtin_protocols is True
    assert settings.stale_after == timedelta(hours=24)
    assert settings.active_protocols_file == Path("data") / "active-protocols.json"
    assert settings.history_file == Path("data") / "protocol-history.json"


def test_settings_loads_from_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "LOG_LEVEL=DEBUG",
                "PROTOCOL_ENGINE_DATA_DIR=state",
                "PROTOCOL_ENGINE_INCLUDE_BUILTINS=false",
                "UNRELATED_SETTING=ignored",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = EngineSettings()

    assert settings.log_level == "DEBUG"
    assert settings.data_dir == Path("state")
    assert settings.include_builtin_protocols is False


def test_environment_overrides_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("PROTOCOL_ENGINE_STALE_AFTER_HOURS=12\n", encoding="utf-8")
    monkeypatch.setenv("PROTOCOL_ENGINE_STALE_AFTER_HOURS", "1.5")

    settings = EngineSettings()

    assert settings.stale_after == timedelta(minutes=90)


def test_stale_after_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROTOCOL_ENGINE_STALE_AFTER_HOURS", "0")

    with pytest.raises(ValidationError):
        EngineSettings()


def test_server_cors_origins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROTOCOL_ENGINE_CORS_ORIGINS", " https://a.example , ,https://b.example")

    settings = ServerSettings()

    assert settings.parsed_cors_origins() == ["https://a.example", "https://b.example"]
