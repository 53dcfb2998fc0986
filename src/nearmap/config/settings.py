# src/nearmap/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/nearmap/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `NEARMAP_LOG_LEVEL`, `NEARMAP_SENSOR_KIND`)
- an external YAML file via `NEARMAP_CONFIG_PATH`

Design rule:
- Tuning knobs (profiles, zoom steps, renderer retries) live in YAML, not hard-coded in logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from nearmap.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `nearmap.config`."""
    text = resources.files("nearmap.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "NearMap"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class CatalogSettings(BaseModel):
    path: str = "data/catalogs/providers.json"


class RegionSettings(BaseModel):
    # Empty source means the packaged `regions.yaml`; otherwise a file path or http(s) URL.
    source: str = ""


class AcquisitionProfileSettings(BaseModel):
    high_accuracy: bool = False
    timeout_ms: int = Field(5_000, gt=0)
    max_cache_age_ms: int = Field(0, ge=0)


class AcquisitionSettings(BaseModel):
    fast: AcquisitionProfileSettings = Field(
        default_factory=lambda: AcquisitionProfileSettings(
            high_accuracy=False, timeout_ms=5_000, max_cache_age_ms=3_600_000
        )
    )
    precise: AcquisitionProfileSettings = Field(
        default_factory=lambda: AcquisitionProfileSettings(
            high_accuracy=True, timeout_ms=10_000, max_cache_age_ms=0
        )
    )


class SensorSettings(BaseModel):
    kind: Literal["static", "ip", "none"] = "none"
    ip_url: str = "http://ip-api.com/json"
    static_lat: float | None = Field(default=None, ge=-90, le=90)
    static_lng: float | None = Field(default=None, ge=-180, le=180)


class NearbySettings(BaseModel):
    max_distance_km: float = Field(50.0, gt=0)
    online_only: bool = True


class RankingSettings(BaseModel):
    nearby: NearbySettings = Field(default_factory=NearbySettings)


class ZoomSteps(BaseModel):
    close: int = 6
    medium: int = 5
    wide: int = 4
    world: int = 2
    # Largest entity count still framed with the medium zoom.
    medium_max_count: int = Field(5, ge=2)


class ViewportSettings(BaseModel):
    default_center_lat: float = Field(-30.5595, ge=-90, le=90)
    default_center_lng: float = Field(22.9375, ge=-180, le=180)
    zoom: ZoomSteps = Field(default_factory=ZoomSteps)
    zoom_min: int = 2
    zoom_max: int = 18
    ready_max_retries: int = Field(10, ge=0)
    ready_base_delay_seconds: float = Field(0.1, ge=0)
    ready_max_delay_seconds: float = Field(1.0, ge=0)

    @model_validator(mode="after")
    def _validate_zoom_bounds(self) -> "ViewportSettings":
        if self.zoom_min > self.zoom_max:
            raise ValueError("viewport.zoom_min must be <= viewport.zoom_max")
        return self


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    regions: RegionSettings = Field(default_factory=RegionSettings)
    acquisition: AcquisitionSettings = Field(default_factory=AcquisitionSettings)
    sensor: SensorSettings = Field(default_factory=SensorSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    viewport: ViewportSettings = Field(default_factory=ViewportSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("NEARMAP_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    regions_source = os.getenv("NEARMAP_REGIONS_SOURCE")
    if regions_source:
        data.setdefault("regions", {})["source"] = regions_source

    sensor_kind = os.getenv("NEARMAP_SENSOR_KIND")
    if sensor_kind:
        data.setdefault("sensor", {})["kind"] = sensor_kind.strip().lower()

    ip_url = os.getenv("NEARMAP_IP_SENSOR_URL")
    if ip_url:
        data.setdefault("sensor", {})["ip_url"] = ip_url

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("NEARMAP_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (fresh copy; `configure_logging` mutates it)."""
    return _read_package_yaml("logging.yaml")
