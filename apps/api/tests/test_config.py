from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from babylog import config as config_module
from babylog.config import AppConfig, load_config


def test_defaults() -> None:
    config = AppConfig()
    assert config.session_ttl_seconds == 30 * 24 * 60 * 60
    assert config.backend == "memory"
    assert len(config.allowed_emails) == 2


@pytest.mark.parametrize(
    "emails",
    [["only@x"], ["a@x", "b@x", "c@x"], ["a@x", "A@X"]],
)
def test_exactly_two_identities(emails) -> None:
    with pytest.raises(ValidationError):
        AppConfig(allowed_emails=emails)


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValidationError):
        AppConfig(backend="postgres")


def test_load_config_reads_file_then_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"session_secret": "from-file", "baby_id": "laura"}))
    monkeypatch.setattr(config_module, "_config_path", lambda: config_file)
    monkeypatch.setenv("BABYLOG_ALLOWED_EMAILS", "a@x, b@x")
    monkeypatch.setenv("BABYLOG_COOKIE_SECURE", "false")

    config = load_config()
    assert config.session_secret == "from-file"
    assert config.baby_id == "laura"
    assert config.allowed_emails == ["a@x", "b@x"]
    assert config.cookie_secure is False

    monkeypatch.setenv("BABYLOG_SESSION_SECRET", "from-env")
    assert load_config().session_secret == "from-env"


def test_missing_secret_is_generated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "_config_path", lambda: tmp_path / "absent.json")
    monkeypatch.delenv("BABYLOG_SESSION_SECRET", raising=False)
    first = load_config()
    second = load_config()
    assert first.session_secret
    assert first.session_secret != second.session_secret
