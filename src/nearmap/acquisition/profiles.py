"""
Named acquisition profiles.

Callers pick a profile by intent instead of repeating option literals:
- `fast`: coarse location is enough (region inference); short timeout, long cache.
- `precise`: nearby search / ranking; high accuracy, longer timeout, no cache reuse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from nearmap.config.settings import Settings

ProfileName = Literal["fast", "precise"]

FAST: ProfileName = "fast"
PRECISE: ProfileName = "precise"


@dataclass(frozen=True)
class AcquisitionProfile:
    name: str
    high_accuracy: bool
    timeout_ms: int
    max_cache_age_ms: int

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


def build_profiles(settings: Settings) -> dict[str, AcquisitionProfile]:
    cfg = settings.acquisition
    return {
        FAST: AcquisitionProfile(
            name=FAST,
            high_accuracy=cfg.fast.high_accuracy,
            timeout_ms=cfg.fast.timeout_ms,
            max_cache_age_ms=cfg.fast.max_cache_age_ms,
        ),
        PRECISE: AcquisitionProfile(
            name=PRECISE,
            high_accuracy=cfg.precise.high_accuracy,
            timeout_ms=cfg.precise.timeout_ms,
            max_cache_age_ms=cfg.precise.max_cache_age_ms,
        ),
    }
