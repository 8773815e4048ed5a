"""Application configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from broadcaster.errors import ConfigError, InvalidArgument, InvalidSchedule
from broadcaster.models import (
    CronSchedule,
    DailyTimesSchedule,
    IntervalSchedule,
    ScheduleSpec,
    Target,
)


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    telegram_bot_token: str = Field(..., alias="TELEGRAM_BOT_TOKEN")
    telegram_api_base_url: str = Field(
        default="https://api.telegram.org",
        alias="TELEGRAM_API_BASE_URL",
    )
    broadcast_config_path: Path = Field(default=Path("config.json"), alias="BROADCAST_CONFIG_PATH")
    database_path: Path = Field(default=Path("broadcaster.db"), alias="DATABASE_PATH")
    # Overrides advanced.log_level from the broadcast config when set.
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")
    request_timeout_seconds: float = Field(default=30.0, alias="REQUEST_TIMEOUT_SECONDS")


class TargetConfig(BaseModel):
    type: Literal["chat", "group", "channel"]
    id: int | None = None
    username: str | None = None

    def to_target(self) -> Target:
        return Target(self.type, id=self.id, handle=self.username)


class MessagingConfig(BaseModel):
    message: str = Field(..., min_length=1)
    targets: list[TargetConfig] = Field(default_factory=list)


class SchedulingConfig(BaseModel):
    type: Literal["interval", "daily", "cron"]
    value: int | str | None = None
    unit: str | None = None
    times: list[str] = Field(default_factory=list)

    def to_schedule_spec(self) -> ScheduleSpec:
        if self.type == "interval":
            return IntervalSchedule(self.value, self.unit or "")  # type: ignore[arg-type]
        if self.type == "daily":
            return DailyTimesSchedule(tuple(self.times))
        return CronSchedule(str(self.value or ""))


class AdvancedConfig(BaseModel):
    message_delay_ms: int = Field(default=2000, ge=0)
    log_level: str = "info"
    log_dir: Path = Path("logs")
    timezone: str | None = None
    # Skip a fire while the previous run is still sending.
    serialize_runs: bool = True
    run_on_start: bool = False

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value


class BroadcastConfig(BaseModel):
    """What to send, to whom, and when."""

    messaging: MessagingConfig
    scheduling: SchedulingConfig
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)

    @model_validator(mode="after")
    def _check_domain(self) -> BroadcastConfig:
        # Surface bad targets and schedules at load time rather than first fire.
        try:
            self.targets()
            self.scheduling.to_schedule_spec()
        except (InvalidArgument, InvalidSchedule) as exc:
            raise ValueError(str(exc)) from exc
        return self

    def targets(self) -> list[Target]:
        return [target.to_target() for target in self.messaging.targets]


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()


def load_broadcast_config(path: Path) -> BroadcastConfig:
    """Read and validate the JSON broadcast configuration."""

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Broadcast config not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Broadcast config {path} is not valid JSON: {exc}") from exc

    try:
        return BroadcastConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid broadcast config {path}: {exc}") from exc
