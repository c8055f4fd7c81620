"""Optional per-project settings read from tasks/config.yaml."""

from __future__ import annotations

import logging

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from taskmaster.errors import EnvironmentFailure
from taskmaster.models.task import Priority, TaskStatus
from taskmaster.util.paths import StoreLocation
from taskmaster.util.time import parse_duration

logger = logging.getLogger(__name__)


class ConfigError(EnvironmentFailure):
    """config.yaml exists but cannot be used."""

    def __init__(self, message: str):
        super().__init__(message, suggested_action="Fix or remove tasks/config.yaml")


class Settings(BaseModel):
    """Tunable behaviour of the store and lifecycle engine."""

    model_config = ConfigDict(extra="forbid")

    project_name: str | None = Field(default=None, description="Name written by init")
    default_priority: int = Field(default=Priority.MEDIUM.value, ge=1, le=3)
    lock_timeout: float = Field(default=5.0, gt=0, description="Seconds to wait for a lock")
    defer_from: list[TaskStatus] = Field(
        default_factory=lambda: [TaskStatus.PENDING, TaskStatus.IN_PROGRESS],
        description="Statuses a task may be deferred from",
    )
    stale_after: str = Field(default="1h", description="Age after which assistant context is stale")

    @field_validator("stale_after")
    @classmethod
    def validate_stale_after(cls, v: str) -> str:
        parse_duration(v)
        return v

    @field_validator("defer_from")
    @classmethod
    def validate_defer_from(cls, v: list[TaskStatus]) -> list[TaskStatus]:
        if TaskStatus.DEFERRED in v:
            raise ValueError("'deferred' cannot be a source status for defer")
        return v


def load_settings(location: StoreLocation) -> Settings:
    """Load settings for a store, using defaults when no config file exists.

    Raises:
        ConfigError: If the file is not valid YAML or has invalid values.
    """
    path = location.config_file
    if not path.exists():
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping")

    try:
        settings = Settings(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.debug("Loaded settings from %s", path)
    return settings
