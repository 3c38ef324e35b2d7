import threading

import pytest

from healthprobe.errors import ConfigError, DuplicateNameError, RegistryFrozenError
from healthprobe.registry import CheckRegistry
from tests.conftest import always_down, always_ok


def test_register_keeps_registration_order(registry):
    registry.register("db", 0.5, always_ok)
    registry.register("cache", 0.05, always_down, critical=False)
    registry.register("api", 1, always_ok)

    assert [check.name for check in registry.list()] == ["db", "cache", "api"]
    cache = registry.get("cache")
    assert cache.timeout == 0.05
    assert cache.critical is False
    assert registry.get("db").critical is True


def test_duplicate_name_is_rejected_and_first_kept(registry):
    registry.register("db", 0.5, always_ok)

    with pytest.raises(DuplicateNameError) as exc_info:
        registry.register("db", 2.0, always_down, critical=False)

    assert exc_info.value.name == "db"
    assert isinstance(exc_info.value, ConfigError)
    assert len(registry) == 1
    check = registry.get("db")
    assert check.probe is always_ok
    assert check.timeout == 0.5


def test_list_is_restartable(registry):
    registry.register("a", 1, always_ok)
    registry.register("b", 1, always_ok)
    view = registry.list()

    assert [c.name for c in view] == ["a", "b"]
    assert [c.name for c in view] == ["a", "b"]
    assert len(view) == 2
    assert view[1].name == "b"


def test_list_view_sees_later_registrations(registry):
    view = registry.list()
    assert list(view) == []
    registry.register("late", 1, always_ok)
    assert [c.name for c in view] == ["late"]


@pytest.mark.parametrize("name, timeout, probe", [
    ("", 1, always_ok),
    (None, 1, always_ok),
    ("zero", 0, always_ok),
    ("negative", -1, always_ok),
    ("not-callable", 1, "nope"),
])
def test_register_rejects_invalid_arguments(registry, name, timeout, probe):
    with pytest.raises(ValueError):
        registry.register(name, timeout, probe)
    assert len(registry) == 0


def test_register_after_freeze_fails(registry):
    registry.register("db", 1, always_ok)
    registry.freeze()

    assert registry.frozen
    with pytest.raises(RegistryFrozenError):
        registry.register("cache", 1, always_ok)
    assert "cache" not in registry
    assert "db" in registry


def test_concurrent_registration_keeps_names_unique():
    registry = CheckRegistry()
    errors = []

    def worker():
        try:
            registry.register("shared", 1, always_ok)
        except DuplicateNameError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 1
    assert len(errors) == 15
