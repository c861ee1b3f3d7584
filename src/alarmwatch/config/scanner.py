"""Scan loop defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float

DEFAULT_SCAN_INTERVAL_SECONDS = 15.0
DEFAULT_DETAIL_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class ScanConfig:
    interval_seconds: float = DEFAULT_SCAN_INTERVAL_SECONDS
    detail_timeout_seconds: float = DEFAULT_DETAIL_TIMEOUT_SECONDS


def get_scan_config() -> ScanConfig:
    return ScanConfig(
        interval_seconds=env_float("SCAN_INTERVAL_SECONDS", DEFAULT_SCAN_INTERVAL_SECONDS),
        detail_timeout_seconds=env_float(
            "DETAIL_TIMEOUT_SECONDS", DEFAULT_DETAIL_TIMEOUT_SECONDS, minimum=0.1
        ),
    )
