"""Tests for configuration loading."""

import pytest
import yaml
from pydantic import ValidationError

from hearth_context.config import HearthConfig, load_config


def test_load_config_from_yaml(tmp_path):
    config_data = {
        "membership_api": {"url": "https://hearth.example.com", "verify_tls": False},
        "session": {"user_id": "alice", "token_env": "ALICE_TOKEN"},
        "preferences": {"db_path": str(tmp_path / "prefs.db")},
        "logging": {"level": "debug", "format": "text"},
    }
    path = tmp_path / "hearth.yaml"
    path.write_text(yaml.dump(config_data))

    cfg = load_config(path)
    assert cfg.membership_api.url == "https://hearth.example.com"
    assert cfg.membership_api.verify_tls is False
    assert cfg.session.user_id == "alice"
    assert cfg.logging.format == "text"


def test_load_config_defaults():
    cfg = HearthConfig()
    assert cfg.membership_api.memberships_path == "/api/user/memberships"
    assert cfg.preferences.db_path == "./data/hearth_preferences.db"
    assert cfg.cache.ttl_seconds == 300.0
    assert cfg.session.to_session() is None


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == HearthConfig()


def test_load_config_file_not_found():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/path.yaml")


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        HearthConfig.model_validate({"logging": {"format": "xml"}})
    with pytest.raises(ValidationError):
        HearthConfig.model_validate({"cache": {"ttl_seconds": 0}})


def test_session_token_from_env(monkeypatch):
    monkeypatch.setenv("HEARTH_TEST_TOKEN", "tok-alice")
    cfg = HearthConfig.model_validate(
        {"session": {"user_id": "alice", "token_env": "HEARTH_TEST_TOKEN"}}
    )
    session = cfg.session.to_session()
    assert session is not None
    assert session.user_id == "alice"
    assert session.auth_headers == {"Authorization": "Bearer tok-alice"}


def test_session_missing_token(monkeypatch):
    monkeypatch.delenv("HEARTH_SESSION_TOKEN", raising=False)
    cfg = HearthConfig.model_validate({"session": {"user_id": "alice"}})
    assert cfg.session.to_session() is None
