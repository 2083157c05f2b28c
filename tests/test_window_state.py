from __future__ import annotations

import json

from lightpad.services.storage import WINDOW_KEY, MemoryStore
from lightpad.services.window_state import WindowGeometry, WindowStateStore


def test_missing_geometry_uses_default_size() -> None:
    geometry = WindowStateStore(MemoryStore()).load()

    assert (geometry.width, geometry.height) == (900, 650)
    assert geometry.has_position is False
    assert geometry.maximized is False


def test_record_and_load() -> None:
    states = WindowStateStore(MemoryStore())

    states.record(1024, 768, 10, 20, maximized=False)

    assert states.load() == WindowGeometry(width=1024, height=768, x=10, y=20, maximized=False)


def test_undersized_window_is_not_recorded() -> None:
    store = MemoryStore()

    assert WindowStateStore(store).record(399, 800, 0, 0, maximized=False) is None
    assert store.get(WINDOW_KEY) is None


def test_maximized_keeps_previous_normal_size() -> None:
    states = WindowStateStore(MemoryStore())
    states.record(1000, 700, 5, 5, maximized=False)

    states.record(2560, 1440, 0, 0, maximized=True)

    assert states.load() == WindowGeometry(width=1000, height=700, x=5, y=5, maximized=True)


def test_undersized_stored_geometry_restores_default() -> None:
    store = MemoryStore({WINDOW_KEY: json.dumps({"width": 100, "height": 100, "x": 3, "y": 4})})

    geometry = WindowStateStore(store).load()

    assert (geometry.width, geometry.height) == (900, 650)
    assert (geometry.x, geometry.y) == (3, 4)


def test_corrupt_geometry_restores_default() -> None:
    assert WindowStateStore(MemoryStore({WINDOW_KEY: "[[["})).load() == WindowGeometry()
    assert WindowStateStore(MemoryStore({WINDOW_KEY: "[1, 2]"})).load() == WindowGeometry()
