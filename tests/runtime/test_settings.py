from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sse_relay.runtime.settings import Settings


def test_settings_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)

    settings = Settings.load()

    assert settings.listen_host == "0.0.0.0"
    assert settings.port == 8787
    assert settings.durable_backend == "memory"
    assert settings.send_timeout_seconds == 5.0
    assert settings.tombstone_limit == 10_000
    assert not settings.observability.enable_cloud_logging


def test_settings_loads_from_environment(monkeypatch, tmp_path: Path) -> None:
    """Settings loads from environment variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SSE_RELAY_PORT", "9000")
    monkeypatch.setenv("SSE_RELAY_DURABLE_BACKEND", "file")
    monkeypatch.setenv("SSE_RELAY_DURABLE_PATH", str(tmp_path / "sessions.json"))
    monkeypatch.setenv("SSE_RELAY_SEND_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("ENABLE_CLOUD_LOGGING", "true")
    monkeypatch.setenv("GCP_PROJECT_ID", "demo-project")

    settings = Settings.load()

    assert settings.port == 9000
    assert settings.durable_backend == "file"
    assert settings.durable_path == tmp_path / "sessions.json"
    assert settings.send_timeout_seconds == 0.5
    assert settings.observability.enable_cloud_logging
    assert settings.observability.gcp_project_id == "demo-project"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("SSE_RELAY_SEND_TIMEOUT_SECONDS", "0"),
        ("SSE_RELAY_DURABLE_BACKEND", "redis"),
        ("SSE_RELAY_CHANNEL_BUFFER_SIZE", "-1"),
        ("SSE_RELAY_PORT", "70000"),
    ],
)
def test_settings_rejects_invalid_values(monkeypatch, tmp_path: Path, name: str, value: str) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings.load()
