from __future__ import annotations

from alarmwatch.domain.ports.persistence import PersistenceError
from alarmwatch.domain.unit_registry import KnownUnitRegistry


class _Loader:
    def __init__(self, *results: set[str] | Exception) -> None:
        self.results = list(results)
        self.calls = 0

    def __call__(self) -> set[str]:
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_registry_loads_once_and_flags_external_units() -> None:
    loader = _Loader({"E1", "L2"})
    registry = KnownUnitRegistry(loader)

    assert not registry.loaded
    assert registry.external_units(["E1", "MA3", "L2"]) == {"MA3"}
    assert registry.is_external("MA3")
    assert not registry.is_external("E1")
    assert loader.calls == 1
    assert registry.loaded


def test_refresh_picks_up_new_units() -> None:
    loader = _Loader({"E1"}, {"E1", "MA3"})
    registry = KnownUnitRegistry(loader)
    assert registry.is_external("MA3")

    registry.refresh()

    assert not registry.is_external("MA3")
    assert loader.calls == 2


def test_failed_load_is_not_cached() -> None:
    loader = _Loader(PersistenceError("down"), {"E1"})
    registry = KnownUnitRegistry(loader)

    assert registry.external_units(["E1"]) == {"E1"}
    assert not registry.loaded
    assert registry.external_units(["E1"]) == set()
    assert loader.calls == 2
