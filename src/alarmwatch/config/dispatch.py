"""Dispatch board configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .resilience import RateLimit, ResilienceConfig

DISPATCH_BASE_URL = "https://redalertmobile.yonkersny.gov"
DISPATCH_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class BoardPaths:
    login: str = "/login.ra"
    dispatch: str = "/dispcall.ra"
    detail: str = "/callinfo.ra"


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Holds dispatch board credentials and HTTP behaviour."""

    username: str
    password: str
    resilience: ResilienceConfig
    paths: BoardPaths = BoardPaths()


def default_board_resilience(base_url: str = DISPATCH_BASE_URL) -> ResilienceConfig:
    return ResilienceConfig(
        name="dispatch-board",
        base_url=base_url,
        timeout_seconds=DISPATCH_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
    )


def get_dispatch_config(*, resilience: ResilienceConfig | None = None) -> DispatchConfig:
    values = require_env_vars(("DISPATCH_USERNAME", "DISPATCH_PASSWORD"))
    base_url = optional_env_var("DISPATCH_BASE_URL", DISPATCH_BASE_URL).rstrip("/")
    return DispatchConfig(
        username=values["DISPATCH_USERNAME"],
        password=values["DISPATCH_PASSWORD"],
        resilience=resilience or default_board_resilience(base_url),
    )
