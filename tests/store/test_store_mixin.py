"""Tests for the StoreMixin UI lifecycle adapter."""

from __future__ import annotations

from typing import Any

from fluxstore import Dispatcher, Store, create_store


def make_store() -> Store:
    return create_store(
        {"get_initial_state": lambda self: {"username": None, "count": 0}},
        dispatcher=Dispatcher(),
    )


class TestLifecycle:
    def test_will_mount_reads_snapshot(self) -> None:
        store = make_store()
        mixin = store.mixin()

        mixin.component_will_mount()

        assert mixin.snapshot == {"username": None, "count": 0}
        assert not mixin.mounted

    def test_did_mount_subscribes(self) -> None:
        store = make_store()
        states: list[Any] = []
        mixin = store.mixin(on_state=states.append)
        mixin.component_will_mount()
        mixin.component_did_mount()

        store.set_state({"username": "mustermann"})

        assert mixin.mounted
        assert mixin.snapshot["username"] == "mustermann"
        assert states == [{"username": "mustermann", "count": 0}]

    def test_did_mount_catches_earlier_changes(self) -> None:
        store = make_store()
        mixin = store.mixin()
        mixin.component_will_mount()

        store.set_state({"count": 5})
        mixin.component_did_mount()

        assert mixin.snapshot["count"] == 5

    def test_did_mount_twice_subscribes_once(self) -> None:
        store = make_store()
        states: list[Any] = []
        mixin = store.mixin(on_state=states.append)

        mixin.component_did_mount()
        mixin.component_did_mount()
        store.set_state({"count": 1})

        assert len(states) == 1

    def test_unmount_stops_updates(self) -> None:
        store = make_store()
        states: list[Any] = []
        mixin = store.mixin(on_state=states.append)
        mixin.component_will_mount()
        mixin.component_did_mount()

        mixin.component_will_unmount()
        store.set_state({"count": 1})

        assert not mixin.mounted
        assert states == []
        assert mixin.snapshot["count"] == 0

    def test_remount(self) -> None:
        store = make_store()
        states: list[Any] = []
        mixin = store.mixin(on_state=states.append)
        mixin.component_did_mount()
        mixin.component_will_unmount()

        mixin.component_did_mount()
        store.set_state({"count": 2})

        assert states == [{"username": None, "count": 2}]


class TestSelector:
    def test_selector_narrows_snapshot(self) -> None:
        store = make_store()
        states: list[Any] = []
        mixin = store.mixin(on_state=states.append, selector=lambda state: state["count"])
        mixin.component_will_mount()
        mixin.component_did_mount()

        store.set_state({"count": 3})

        assert mixin.snapshot == 3
        assert states == [3]

    def test_snapshot_is_detached_from_store(self) -> None:
        store = create_store(
            {"get_initial_state": lambda self: {"items": [1]}}, dispatcher=Dispatcher()
        )
        mixin = store.mixin()
        mixin.component_will_mount()

        mixin.snapshot["items"].append(2)

        assert store.get("items") == [1]
