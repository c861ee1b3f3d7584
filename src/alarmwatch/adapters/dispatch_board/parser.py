"""BeautifulSoup parsing for the dispatch board and call-detail pages."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Final

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from soupsieve import SelectorSyntaxError

from alarmwatch.domain.model import AlarmDetail
from alarmwatch.domain.ports.capture import ElementExtractionError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

OPEN_CALLS_CONTAINER: Final[str] = "#openCalls"
OPEN_CALL_ITEMS: Final[str] = '#openCalls li:not([data-role="list-divider"])'
NOTES_MARKER: Final[str] = "Call Notes:"
TIMELINE_STAMP: Final[re.Pattern[str]] = re.compile(r"^\d{2}/\d{2} \d{2}:\d{2}:\d{2}$")

_PARSER = "html.parser"

type DetailFetcher = Callable[[str], Awaitable[AlarmDetail]]


class HtmlAlarmElement:
    """One ``<li>`` of the open-calls list.

    Detail pages are fetched lazily through ``detail_fetcher`` so the element
    can be handed to the reconciliation engine like any other raw element.
    """

    def __init__(self, tag: Tag, detail_fetcher: DetailFetcher) -> None:
        self._tag = tag
        self._detail_fetcher = detail_fetcher

    def extract_field(self, selector: str, *, attribute: str | None = None) -> str | None:
        node = self._select_one(selector)
        if node is None:
            return None
        if attribute is None:
            return node.get_text(" ", strip=True)
        value = node.get(attribute)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def extract_all(self, selector: str) -> list[str]:
        try:
            nodes = self._tag.select(selector)
        except SelectorSyntaxError as exc:
            raise ElementExtractionError(f"Invalid selector {selector!r}") from exc
        return [node.get_text() for node in nodes]

    async def fetch_detail(self, dcid: str) -> AlarmDetail:
        return await self._detail_fetcher(dcid)

    def _select_one(self, selector: str) -> Tag | None:
        try:
            return self._tag.select_one(selector)
        except SelectorSyntaxError as exc:
            raise ElementExtractionError(f"Invalid selector {selector!r}") from exc


def parse_board(html: str) -> list[Tag]:
    """Return the open-call list items, skipping divider rows."""

    soup = BeautifulSoup(html, _PARSER)
    if soup.select_one(OPEN_CALLS_CONTAINER) is None:
        log.warning("Dispatch page has no %s list; treating it as empty", OPEN_CALLS_CONTAINER)
        return []
    return soup.select(OPEN_CALL_ITEMS)


def _call_notes(soup: BeautifulSoup) -> str | None:
    for name in ("p", "li"):
        for node in soup.find_all(name):
            text = node.get_text()
            if NOTES_MARKER in text:
                return text.strip() or None
    return None


def _entry_text(stamp: Tag) -> str:
    parts: list[str] = []
    for sibling in stamp.next_siblings:
        if isinstance(sibling, Tag):
            if sibling.name in {"br", "b"}:
                break
            continue
        if isinstance(sibling, NavigableString) and not isinstance(sibling, Comment):
            parts.append(str(sibling))
    return "".join(parts).strip()


def _call_timeline(soup: BeautifulSoup) -> str | None:
    """One line per bold ``MM/DD HH:MM:SS`` stamp: the stamp immediately followed by its text.

    No separator is inserted, so stored timelines match those already recorded
    by earlier scanners (``"02/14 10:01:00E307 dispatched"``).
    """

    entries: list[str] = []
    for stamp in soup.find_all("b"):
        stamp_text = stamp.get_text(strip=True)
        if not TIMELINE_STAMP.match(stamp_text):
            continue
        text = _entry_text(stamp)
        if text:
            entries.append(f"{stamp_text}{text}")
    return "\n".join(entries) or None


def parse_detail_page(html: str) -> AlarmDetail:
    soup = BeautifulSoup(html, _PARSER)
    return AlarmDetail(notes=_call_notes(soup), timeline=_call_timeline(soup))


def login_error_message(html: str) -> str | None:
    soup = BeautifulSoup(html, _PARSER)
    node = soup.select_one("#showerr")
    if node is None:
        return None
    return node.get_text(" ", strip=True) or None
