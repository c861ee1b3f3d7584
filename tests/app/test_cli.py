from __future__ import annotations

import pytest

from alarmwatch.config import MissingConfigurationError
from alarmwatch.ui import cli as cli_module


def test_scan_once(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    async def fake_scan(**kwargs: object) -> int:
        captured.update(kwargs)
        return 1

    monkeypatch.setattr(cli_module, "scan", fake_scan)

    cli_module.main(["scan", "--once"])

    assert captured == {"once": True, "interval": None}


def test_scan_with_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    async def fake_scan(**kwargs: object) -> int:
        captured.update(kwargs)
        return 1

    monkeypatch.setattr(cli_module, "scan", fake_scan)

    cli_module.main(["scan", "--interval", "5"])

    assert captured == {"once": False, "interval": 5.0}


def test_scan_rejects_non_positive_interval() -> None:
    with pytest.raises(SystemExit) as exc:
        cli_module.main(["scan", "--interval", "0"])

    assert exc.value.code == 2


def test_units_add_and_list(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    added: list[list[str]] = []

    def fake_add(unit_ids: list[str]) -> set[str]:
        added.append(list(unit_ids))
        return set(unit_ids)

    monkeypatch.setattr(cli_module, "add_known_units", fake_add)
    monkeypatch.setattr(cli_module, "list_known_units", lambda: ["B2", "E1"])

    cli_module.main(["units", "add", "E1", "B2"])
    cli_module.main(["units", "list"])

    assert added == [["E1", "B2"]]
    assert capsys.readouterr().out.splitlines() == ["B2", "E1"]


def test_configuration_error_exits_with_code_two(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_scan(**_: object) -> int:
        raise MissingConfigurationError("Missing configuration for: DISPATCH_PASSWORD")

    monkeypatch.setattr(cli_module, "scan", fake_scan)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["scan", "--once"])

    assert exc.value.code == 2


def test_unexpected_error_exits_with_code_one(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_scan(**_: object) -> int:
        raise RuntimeError("boom")

    monkeypatch.setattr(cli_module, "scan", fake_scan)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["scan"])

    assert exc.value.code == 1
