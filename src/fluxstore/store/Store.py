"""Store - authoritative state for one slice of a Flux application.

A store is assembled once from a definition (plus its mixins) and a list of
action handlers, then lives for the lifetime of the application. Dispatchers
drive it through DispatchCycles; UI code reads it and subscribes to changes.

Usage:
    constants = create_constants(["LOGIN"], "USER")

    def login(store, payload):
        store.set_state({"username": payload["username"]})

    user_store = create_store(
        {
            "mixins": [TimestampMixin],
            "get_initial_state": lambda store: {"username": None},
            "is_logged_in": lambda store: store.get("username") is not None,
        },
        [[constants.LOGIN, login]],
    )
"""

# pyright: reportPrivateUsage=false

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from types import MethodType
from typing import TYPE_CHECKING, Any

from deepdiff import Delta

from fluxstore.config import get_config
from fluxstore.errors import ConstructionError
from fluxstore.store.ChangeBus import ChangeBus, ChangeListener
from fluxstore.store.DispatchCycle import DispatchCycle, active_cycle
from fluxstore.store.HandlerTable import HandlerTable, validate_handler_definitions
from fluxstore.store.Mixins import Definition, merge_initial_state, resolve_definition
from fluxstore.store.snapshot import diff_image, snapshot
from fluxstore.store.StateContainer import StateContainer, check_mapping, diff_states
from fluxstore.store.StoreMixin import StoreMixin

if TYPE_CHECKING:
    from fluxstore.store.Dispatcher import Dispatcher

logger = logging.getLogger(__name__)

# Action-state changes are reported under this path prefix, e.g.
# affects("action_state.USER_LOGIN.error")
ACTION_STATE_PATH = "action_state"

_INSTANCE_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "_definition",
        "_display_name",
        "_change_bus",
        "_state",
        "_handlers",
        "_batch_depth",
        "_batch_before",
        "_batch_dirty",
        "_lock",
        "_lock_loop",
    }
)


async def _invoke(hook: Callable[..., Any] | None, *args: Any) -> Any:
    if hook is None:
        return None
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _bind(store: Store, member: Any) -> Any:
    if isinstance(member, staticmethod):
        return member.__func__
    if isinstance(member, type) or not callable(member):
        return member
    return MethodType(member, store)


class Store:
    """A Flux store: state container, change bus and action handler table."""

    _definition: Definition
    _display_name: str | None
    _change_bus: ChangeBus
    _state: StateContainer
    _handlers: HandlerTable
    _batch_depth: int
    _batch_before: tuple[dict[str, Any], dict[Any, Any]] | None
    _batch_dirty: bool
    _lock: asyncio.Lock | None
    _lock_loop: asyncio.AbstractEventLoop | None

    def __init__(
        self, definition: Definition | None = None, handler_definitions: Any = ()
    ) -> None:
        """Build a store. Prefer create_store(), which also registers it.

        Order: validate handlers -> resolve mixins -> bind members -> install
        merged initial state -> register handlers -> store_did_mount hooks.

        Raises:
            ConstructionError: If the definition, a mixin or a handler
                definition is malformed
        """
        if definition is None:
            definition = {}
        if not isinstance(definition, Mapping):
            raise ConstructionError(
                f"store definition must be a mapping, got {type(definition).__name__}"
            )
        entries = validate_handler_definitions(handler_definitions)
        resolved = resolve_definition(definition, RESERVED_NAMES)

        self._definition = definition
        self._display_name = resolved.display_name
        self._change_bus = ChangeBus()
        self._state = StateContainer(notify=self._notify)
        self._handlers = HandlerTable(self)
        self._batch_depth = 0
        self._batch_before = None
        self._batch_dirty = False
        self._lock = None
        self._lock_loop = None

        for name, member in resolved.members.items():
            setattr(self, name, _bind(self, member))

        self._state.install(merge_initial_state(resolved, self))

        for constant, wait_for, callback in entries:
            self._handlers.add(constant, [wait_for, callback] if wait_for else callback)

        for did_mount in resolved.did_mount_fns:
            did_mount(self)

        logger.debug(
            "Created %r from %d sources with %d handlers",
            self,
            len(resolved.sources),
            len(self._handlers),
        )

    # --- Definition ---

    @property
    def definition(self) -> Definition:
        """The mapping this store was built from. Reused when the store is a mixin."""
        return self._definition

    @property
    def display_name(self) -> str | None:
        return self._display_name

    # --- State ---

    @property
    def state(self) -> StateContainer:
        return self._state

    def get(self, key: str) -> Any:
        return self._state.get(key)

    def set(self, values: Mapping[str, Any]) -> None:
        """Shallow-merge values into the state. No notification for an empty mapping."""
        self._state.set(values)

    def set_state(self, values: Mapping[str, Any]) -> None:
        self._state.set(values)

    def replace_state(self, values: Mapping[str, Any]) -> None:
        self._state.replace(values)

    def to_js(self) -> dict[str, Any]:
        return self._state.to_js()

    def to_object(self) -> dict[str, Any]:
        return self._state.to_object()

    def to_json(self) -> dict[str, Any]:
        return self._state.to_json()

    def get_state(self) -> dict[str, Any]:
        """Snapshot of the whole state, as handed to UI components."""
        return self._state.to_object()

    # --- Change notification ---

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to state changes. Returns a function that unsubscribes.

        Listeners receive an `affects(path)` helper, e.g. affects("username").
        """
        self._change_bus.append(listener)

        def unsubscribe() -> None:
            self._change_bus.remove(listener)

        return unsubscribe

    def off_change(self, listener: ChangeListener) -> None:
        """Remove every subscription of listener."""
        self._change_bus.remove(listener)

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Announce all mutations made inside the block as one change.

        Nested batches fold into the outermost one. Nothing is announced when
        the block mutates nothing.
        """
        if self._batch_depth == 0:
            self._batch_before = (self._state.image(), self._action_state_image())
            self._batch_dirty = False
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                before = self._batch_before
                dirty = self._batch_dirty
                self._batch_before = None
                self._batch_dirty = False
                if dirty and before is not None:
                    self._change_bus.emit(
                        diff_states(before[0], self._state.image()),
                        self._action_state_delta(before[1], self._action_state_image()),
                    )

    def _notify(self, *deltas: Delta) -> None:
        if self._batch_depth > 0:
            self._batch_dirty = True
            return
        self._change_bus.emit(*deltas)

    def _action_state_image(self) -> dict[Any, Any]:
        return {record.constant: diff_image(record.state) for record in self._handlers}

    @staticmethod
    def _action_state_delta(before: Any, after: Any) -> Delta:
        return diff_states({ACTION_STATE_PATH: before}, {ACTION_STATE_PATH: after})

    # --- Action handlers ---

    def add_action_handler(self, constant: Any, definition: Any) -> None:
        """Register a handler for constant.

        Args:
            constant: The action constant
            definition: A mapping with any of get_initial_state, before,
                callback, success, fail, after; a bare callback; or a
                [wait_for, definition] pair

        Raises:
            ConstructionError: If the constant is already handled or the
                definition is malformed
        """
        self._handlers.add(constant, definition)

    def get_action_state(self, constant: Any, key: str | None = None) -> Any:
        """A copy of the handler's sub-state, or one value of it.

        Raises:
            HandlerNotFoundError: If no handler is registered for constant
        """
        record = self._handlers.require("get_action_state", constant)
        if key is None:
            return snapshot(record.state)
        return record.state.get(key)

    def set_action_state(self, constant: Any, values: Mapping[str, Any]) -> None:
        """Shallow-merge values into the handler's sub-state.

        Raises:
            HandlerNotFoundError: If no handler is registered for constant
        """
        record = self._handlers.require("set_action_state", constant)
        check_mapping("Store.set_action_state", values)
        if not values:
            return
        before = diff_image(record.state)
        record.state.update(values)
        after = diff_image(record.state)
        self._notify(self._action_state_delta({constant: before}, {constant: after}))

    def reset_action_state(self, constant: Any) -> None:
        """Restore the handler's sub-state to what its get_initial_state returned.

        Raises:
            HandlerNotFoundError: If no handler is registered for constant
        """
        record = self._handlers.require("reset_action_state", constant)
        before = diff_image(record.state)
        record.reset_state()
        after = diff_image(record.state)
        self._notify(self._action_state_delta({constant: before}, {constant: after}))

    def get_handler_index(self, constant: Any = None) -> int:
        """Registration index of the handler for constant.

        Raises:
            HandlerNotFoundError: If constant is missing, None or unregistered
        """
        return self._handlers.index_of(constant)

    # --- Dispatch ---

    def _cycle_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _run_cycle(self, cycle: DispatchCycle) -> Any:
        """Run this store's handler for cycle.

        wait_for -> before -> callback -> success | fail -> after. The
        returned value is the callback's result; a failure is re-raised after
        fail and after have run so dependents and the dispatcher see it.
        """
        record = self._handlers.get(cycle.constant)
        if record is None:
            return None

        async with self._cycle_lock():
            payload = cycle.payload
            token = active_cycle.set(cycle)
            try:
                try:
                    if record.wait_for:
                        await cycle.wait_for(self, record.wait_for)
                    await _invoke(record.before, self, payload)
                    result = await _invoke(record.callback, self, payload)
                except Exception as error:
                    logger.debug("%r failed [%s]: %s", self, cycle.constant, error)
                    await _invoke(record.fail, self, error)
                    raise
                await _invoke(record.success, self, result)
                return result
            finally:
                await _invoke(record.after, self, payload)
                active_cycle.reset(token)

    # --- UI ---

    def mixin(
        self,
        on_state: Callable[[Any], None] | None = None,
        selector: Callable[[dict[str, Any]], Any] | None = None,
    ) -> StoreMixin:
        """Lifecycle adapter for a UI component bound to this store."""
        return StoreMixin(self, on_state=on_state, selector=selector)

    def __repr__(self) -> str:
        if self._display_name:
            return f"<Store {self._display_name!r}>"
        return f"<Store at {id(self):#x}>"


RESERVED_NAMES: frozenset[str] = (
    frozenset(name for name in dir(Store) if not name.startswith("__"))
    | _INSTANCE_ATTRIBUTES
)


def create_store(
    definition: Definition | None = None,
    handler_definitions: Any = (),
    *,
    dispatcher: Dispatcher | None = None,
) -> Store:
    """Build a store and register it with a dispatcher.

    Args:
        definition: Store definition mapping (mixins, get_initial_state,
            store_did_mount, display_name and any methods)
        handler_definitions: [[constant, callback], [constant, wait_for, callback], ...]
        dispatcher: Dispatcher to register with; defaults to the configured one

    Raises:
        ConstructionError: If anything about the definition is malformed. The
            store is not registered in that case.
    """
    store = Store(definition, handler_definitions)
    if dispatcher is None:
        dispatcher = get_config().dispatcher
    dispatcher.register(store)
    return store
