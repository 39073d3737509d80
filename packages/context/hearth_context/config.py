"""
Configuration loading and validation.

Loads context configuration from a YAML file. The session token is resolved
from an environment variable and never stored in the config file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

from .session import Session


class MembershipApiConfig(BaseModel):
    url: str = "http://localhost:3000"
    memberships_path: str = "/api/user/memberships"
    verify_tls: bool = True
    request_timeout_seconds: int = 30


class SessionConfig(BaseModel):
    user_id: str | None = None
    token_env: str = "HEARTH_SESSION_TOKEN"

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env)

    def to_session(self) -> Session | None:
        token = self.token
        if not self.user_id or not token:
            return None
        return Session(user_id=self.user_id, token=token)


class PreferencesConfig(BaseModel):
    db_path: str = "./data/hearth_preferences.db"


class CacheConfig(BaseModel):
    ttl_seconds: float = Field(default=300.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class MetricsConfig(BaseModel):
    enabled: bool = True


class HearthConfig(BaseModel):
    membership_api: MembershipApiConfig = Field(default_factory=MembershipApiConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    preferences: PreferencesConfig = Field(default_factory=PreferencesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def load_config(path: str | Path) -> HearthConfig:
    """Load and validate context configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return HearthConfig.model_validate(raw)
