"""Unit tests for configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from swf_decider.config import DeciderSettings

_ENV_VARS = (
    "LOG_LEVEL",
    "DECIDER_COMPLETION_RESULT",
    "DECIDER_MAX_REASON_LENGTH",
    "DECIDER_MAX_DETAILS_LENGTH",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults() -> None:
    """Test settings default values."""
    settings = DeciderSettings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.completion_result == "All tasks completed successfully."
    assert settings.max_reason_length == 256
    assert settings.max_details_length == 32768


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("DECIDER_MAX_REASON_LENGTH", "64")

    settings = DeciderSettings(_env_file=None)

    assert settings.log_level == "DEBUG"
    assert settings.max_reason_length == 64


def test_settings_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text(
        "DECIDER_COMPLETION_RESULT=Order processed\nUNRELATED_SETTING=ignored\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    settings = DeciderSettings()

    assert settings.completion_result == "Order processed"


def test_settings_reject_non_positive_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DECIDER_MAX_DETAILS_LENGTH", "0")

    with pytest.raises(ValidationError):
        DeciderSettings(_env_file=None)
