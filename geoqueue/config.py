from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    file: Path | None = Field(default=None)

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {value}")
        return value

    @field_validator("file")
    @classmethod
    def _expand_file(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None


class StorageConfig(BaseModel):
    db_path: Path = Field(Path("data/geoqueue.db"))
    queue_key: str = Field("pending-locations", min_length=1)
    device_id_key: str = Field("trackingUserId", min_length=1)

    @field_validator("db_path")
    @classmethod
    def _expand_db_path(cls, value: Path) -> Path:
        return value.expanduser()


class UplinkConfig(BaseModel):
    """Remote endpoint receiving location batches."""

    url: str = Field("http://localhost:3000")
    path: str = Field("/api/location")
    timeout: float = Field(30.0, gt=0)
    device_id: str | None = Field(default=None)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("path")
    @classmethod
    def _validate_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("path must start with /")
        return value

    @property
    def endpoint(self) -> str:
        return f"{self.url}{self.path}"


class GPSConfig(BaseModel):
    """GPS daemon configuration."""

    host: str = Field("localhost")
    port: int = Field(2947, ge=1, le=65535)
    timeout: float = Field(10.0, ge=1.0)
    reconnect_delay: float = Field(5.0, ge=0.0)
    max_reconnect_attempts: int = Field(0, ge=0)  # 0 = infinite
    mock_mode: bool = Field(False)
    mock_lat: float = Field(52.2297, ge=-90, le=90)  # Warsaw
    mock_lon: float = Field(21.0122, ge=-180, le=180)
    mock_interval: float = Field(1.0, ge=0.0)


class TrackingConfig(BaseModel):
    distance_interval_m: float = Field(50.0, ge=0)
    deferred_interval_ms: int = Field(60000, ge=0)
    require_fix: bool = Field(True)
    batch_size: int = Field(1, ge=1, le=1000)
    foreground_permission: PermissionStatus = Field(PermissionStatus.UNDETERMINED)
    background_permission: PermissionStatus = Field(PermissionStatus.UNDETERMINED)


class GeoQueueConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    uplink: UplinkConfig = Field(default_factory=UplinkConfig)
    gps: GPSConfig = Field(default_factory=GPSConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)


def load_config(path: Path) -> GeoQueueConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping, got {type(raw).__name__}")
    try:
        return GeoQueueConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/geoqueue, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get("GEOQUEUE_CONFIG")
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/geoqueue/geoqueue.yml"), Path("configs/geoqueue.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fallback to first candidate even if not exists to surface errors consistently
    return candidates[0] if candidates else Path("configs/geoqueue.yml").resolve()


def load_or_default(cli_path: Path | None) -> GeoQueueConfig:
    """Load the resolved config file, or built-in defaults when none exists."""
    resolved = resolve_config_path(cli_path)
    if not resolved.exists():
        return GeoQueueConfig()
    return load_config(resolved)
