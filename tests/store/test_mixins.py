"""Tests for mixin resolution."""

from __future__ import annotations

from typing import Any

import pytest

from fluxstore import ConstructionError, Dispatcher, Store, create_store
from fluxstore.store.Mixins import flatten_mixins, resolve_definition


def make_store(definition: dict[str, Any]) -> Store:
    return create_store(definition, [], dispatcher=Dispatcher())


class TestFlatten:
    def test_depth_first_order(self) -> None:
        """[A, B] where A includes [C] resolves to C, A, B, definition."""
        c: dict[str, Any] = {"display_name": "C"}
        a: dict[str, Any] = {"display_name": "A", "mixins": [c]}
        b: dict[str, Any] = {"display_name": "B"}
        definition: dict[str, Any] = {"mixins": [a, b]}

        ordered = flatten_mixins(definition)

        assert len(ordered) == 4
        assert all(s is e for s, e in zip(ordered, [c, a, b, definition]))

    def test_diamond_applied_once(self) -> None:
        """A mixin reached twice is applied once, at its first position."""
        shared: dict[str, Any] = {"display_name": "shared"}
        a: dict[str, Any] = {"mixins": [shared]}
        b: dict[str, Any] = {"mixins": [shared]}

        ordered = flatten_mixins({"mixins": [a, b]})

        assert sum(1 for s in ordered if s is shared) == 1
        assert ordered[0] is shared

    def test_direct_cycle(self) -> None:
        a: dict[str, Any] = {"display_name": "A"}
        a["mixins"] = [a]

        with pytest.raises(ConstructionError, match="cyclic mixin graph"):
            flatten_mixins({"mixins": [a]})

    def test_transitive_cycle(self) -> None:
        a: dict[str, Any] = {"display_name": "A"}
        b: dict[str, Any] = {"display_name": "B", "mixins": [a]}
        a["mixins"] = [b]

        with pytest.raises(ConstructionError, match="cyclic mixin graph: 'A'"):
            make_store({"mixins": [a]})

    def test_mixins_must_be_array(self) -> None:
        with pytest.raises(ConstructionError, match="mixins must be an array"):
            make_store({"mixins": {"bar": lambda self: None}})

    def test_mixin_must_be_mapping(self) -> None:
        with pytest.raises(ConstructionError, match="mixins must be mappings or stores"):
            make_store({"mixins": [42]})


class TestMembers:
    def test_outer_overrides_inner(self) -> None:
        """An enhanced mixin overrides members of the mixins it includes."""
        inner = {"greet": lambda self: "inner", "get_initial_state": lambda self: {"k": "inner"}}
        outer = {
            "mixins": [inner],
            "greet": lambda self: "outer",
            "get_initial_state": lambda self: {"k": "outer"},
        }

        store = make_store({"mixins": [outer]})

        assert store.greet() == "outer"
        assert store.get("k") == "outer"

    def test_later_mixin_wins(self) -> None:
        first = {"greet": lambda self: "first"}
        second = {"greet": lambda self: "second"}

        store = make_store({"mixins": [first, second]})

        assert store.greet() == "second"

    def test_definition_wins_over_mixins(self) -> None:
        mixin = {"greet": lambda self: "mixin", "get_initial_state": lambda self: {"k": 1}}

        store = make_store(
            {
                "mixins": [mixin],
                "greet": lambda self: "store",
                "get_initial_state": lambda self: {"k": 2},
            }
        )

        assert store.greet() == "store"
        assert store.get("k") == 2

    def test_plain_values_are_copied(self) -> None:
        store = make_store({"mixins": [{"limit": 10}], "label": "users"})

        assert store.limit == 10
        assert store.label == "users"

    def test_staticmethod_is_not_bound(self) -> None:
        store = make_store({"double": staticmethod(lambda x: x * 2)})

        assert store.double(4) == 8

    def test_methods_see_store_state(self) -> None:
        counter = {
            "get_initial_state": lambda self: {"count": 0},
            "increment": lambda self: self.set_state({"count": self.get("count") + 1}),
        }

        store = make_store({"mixins": [counter]})
        store.increment()
        store.increment()

        assert store.get("count") == 2

    def test_store_as_mixin(self) -> None:
        """A store can be a mixin: its definition is reused, not its state."""
        base = make_store(
            {
                "get_initial_state": lambda self: {"source": "base"},
                "describe": lambda self: f"source={self.get('source')}",
            }
        )
        base.set_state({"source": "changed"})

        derived = make_store({"mixins": [base]})

        assert derived.get("source") == "base"
        assert derived.describe() == "source=base"


class TestReservedNames:
    @pytest.mark.parametrize(
        "name", ["set_state", "get", "on_change", "state", "_handlers", "__init__"]
    )
    def test_reserved_name_in_mixin(self, name: str) -> None:
        with pytest.raises(ConstructionError, match="reserved"):
            make_store({"mixins": [{name: lambda self: None}]})

    def test_reserved_name_in_definition(self) -> None:
        with pytest.raises(ConstructionError, match="'set_state'"):
            make_store({"set_state": lambda self, values: None})

    def test_private_helpers_allowed(self) -> None:
        store = make_store({"_format": lambda self, v: f"<{v}>"})

        assert store._format("x") == "<x>"


class TestInitialState:
    def test_merge_order(self) -> None:
        a = {"get_initial_state": lambda self: {"a": 1, "shared": "a"}}
        b = {"get_initial_state": lambda self: {"b": 2, "shared": "b"}}

        store = make_store({"mixins": [a, b]})

        assert store.to_object() == {"a": 1, "b": 2, "shared": "b"}

    def test_none_result_is_empty(self) -> None:
        store = make_store({"get_initial_state": lambda self: None})

        assert store.to_object() == {}

    def test_non_mapping_result(self) -> None:
        with pytest.raises(ConstructionError, match="must return a mapping"):
            make_store({"get_initial_state": lambda self: ["a", 1]})

    def test_get_initial_state_must_be_callable(self) -> None:
        with pytest.raises(ConstructionError, match="must be callable"):
            make_store({"get_initial_state": {"a": 1}})

    def test_did_mount_can_subscribe(self) -> None:
        """Initial state is installed silently; store_did_mount may subscribe and set."""
        calls: list[str] = []

        def did_mount(self: Store) -> None:
            self.on_change(lambda affects: calls.append("change"))
            self.set_state({"mounted": True})

        store = make_store(
            {"get_initial_state": lambda self: {"a": 1}, "store_did_mount": did_mount}
        )

        assert calls == ["change"]
        assert store.get("a") == 1
        assert store.get("mounted") is True


class TestStoreDidMount:
    def test_sees_installed_state_and_methods(self) -> None:
        seen: list[Any] = []
        mixin = {
            "get_initial_state": lambda self: {"from_mixin": True},
            "helper": lambda self: "helped",
        }

        make_store(
            {
                "mixins": [mixin],
                "get_initial_state": lambda self: {"own": True},
                "store_did_mount": lambda self: seen.append(
                    (self.get("from_mixin"), self.get("own"), self.helper())
                ),
            }
        )

        assert seen == [(True, True, "helped")]

    def test_sees_registered_handlers(self) -> None:
        seen: list[Any] = []

        create_store(
            {"store_did_mount": lambda self: seen.append(self.get_handler_index("GO"))},
            [["GO", lambda store, payload: None]],
            dispatcher=Dispatcher(),
        )

        assert seen == [0]

    def test_display_name_in_repr(self) -> None:
        store = make_store({"display_name": "users"})

        assert store.display_name == "users"
        assert repr(store) == "<Store 'users'>"


class TestResolveDefinition:
    def test_collects_hooks_in_order(self) -> None:
        def inner_init(self: Store) -> dict[str, Any]:
            return {}

        def outer_init(self: Store) -> dict[str, Any]:
            return {}

        resolved = resolve_definition(
            {"mixins": [{"get_initial_state": inner_init}], "get_initial_state": outer_init}
        )

        assert resolved.initial_state_fns == [inner_init, outer_init]
        assert resolved.did_mount_fns == []
        assert resolved.members == {}
