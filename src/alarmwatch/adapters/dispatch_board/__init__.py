"""Dispatch board capture adapter."""

from __future__ import annotations

from .client import DispatchBoardClient, DispatchBoardError, DispatchLoginError
from .parser import HtmlAlarmElement, parse_board, parse_detail_page

__all__ = [
    "DispatchBoardClient",
    "DispatchBoardError",
    "DispatchLoginError",
    "HtmlAlarmElement",
    "parse_board",
    "parse_detail_page",
]
