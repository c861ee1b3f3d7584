"""HTTP client for the dispatch board (login, open calls, call details)."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from alarmwatch.adapters.http_resilience import ResilientClient
from alarmwatch.domain.model import AlarmDetail

from .parser import HtmlAlarmElement, login_error_message, parse_board, parse_detail_page

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from alarmwatch.config.dispatch import DispatchConfig
    from alarmwatch.config.resilience import ResilienceConfig

log = getLogger(__name__)


class DispatchBoardError(RuntimeError):
    """Raised when the dispatch board cannot be read."""


class DispatchLoginError(DispatchBoardError):
    """Raised when the board rejects our credentials."""


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class DispatchBoardClient:
    """Reads open calls from the board, logging in whenever the session lapses."""

    def __init__(
        self,
        config: DispatchConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
    ) -> None:
        self.config = config
        self._client = client_factory(config.resilience)
        self._logged_in = False
        self._login_lock = asyncio.Lock()

    async def __aenter__(self) -> DispatchBoardClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def logged_in(self) -> bool:
        return self._logged_in

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self) -> None:
        paths = self.config.paths
        log.info("Logging in to dispatch board as %s", self.config.username)
        try:
            response = await self._client.post(
                paths.login,
                data={"secid": self.config.username, "pw": self.config.password},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DispatchLoginError(f"Login request failed: {exc}") from exc

        if self._is_login_page(response):
            self._logged_in = False
            reason = login_error_message(response.text) or "still on the login page"
            raise DispatchLoginError(f"Login rejected: {reason}")

        self._logged_in = True
        log.info("Login successful")

    async def list_active_elements(self) -> list[HtmlAlarmElement]:
        response = await self._get_authenticated(self.config.paths.dispatch)
        tags = parse_board(response.text)
        return [HtmlAlarmElement(tag, self.fetch_detail) for tag in tags]

    async def fetch_detail(self, dcid: str) -> AlarmDetail:
        """Load one call's notes and timeline.

        A redirect to the login page yields an empty detail and forces a fresh
        login before the next board read.
        """

        response = await self._get(self.config.paths.detail, params={"dcid": dcid})
        if self._is_login_page(response):
            log.warning("Session expired while loading details for alarm #%s", dcid)
            self._logged_in = False
            return AlarmDetail()
        return parse_detail_page(response.text)

    async def _get_authenticated(self, path: str) -> httpx.Response:
        await self._ensure_session()
        response = await self._get(path)
        if not self._is_login_page(response):
            return response

        log.info("Dispatch board session expired; logging in again")
        self._logged_in = False
        await self._ensure_session()
        response = await self._get(path)
        if self._is_login_page(response):
            raise DispatchLoginError(f"Redirected to the login page when loading {path}")
        return response

    async def _ensure_session(self) -> None:
        async with self._login_lock:
            if not self._logged_in:
                await self.login()

    async def _get(self, path: str, *, params: dict[str, str] | None = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DispatchBoardError(f"Failed to load {path}: {exc}") from exc
        return response

    def _is_login_page(self, response: httpx.Response) -> bool:
        return response.url.path.endswith(self.config.paths.login)
