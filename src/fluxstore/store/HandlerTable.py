"""Action handlers for Store.

A HandlerRecord holds everything a store knows about one action constant:
the stores it waits for, its lifecycle hooks, and its own sub-state. Hooks
receive the owning store first, like mixin methods:

    before(store, payload)
    callback(store, payload) -> result
    success(store, result)
    fail(store, error)
    after(store, payload)
    get_initial_state(store) -> Mapping

Each hook may return an awaitable; the dispatch cycle awaits it.
"""

# pyright: reportPrivateUsage=false
# The handler table is an internal Store component.

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fluxstore.errors import ConstructionError, HandlerNotFoundError
from fluxstore.store.snapshot import snapshot

if TYPE_CHECKING:
    from fluxstore.store.Store import Store

logger = logging.getLogger(__name__)

type Hook = Callable[..., Any | Awaitable[Any]]

HOOK_NAMES: tuple[str, ...] = ("before", "callback", "success", "fail", "after")
DEFINITION_KEYS: frozenset[str] = frozenset({"get_initial_state", *HOOK_NAMES})


def is_constant(constant: Any) -> bool:
    """A constant is any truthy hashable value.

    None, "", 0 and False are rejected, as are unhashable values.
    """
    try:
        hash(constant)
    except TypeError:
        return False
    return bool(constant)


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def validate_wait_for(wait_for: Any, owner: Store | None = None) -> tuple[Store, ...]:
    """Check that wait_for is an array of other stores.

    Raises:
        ConstructionError: If wait_for is not a list/tuple of Store instances,
            or lists the owner itself
    """
    from fluxstore.store.Store import Store

    if not _is_array(wait_for) or not all(isinstance(s, Store) for s in wait_for):
        raise ConstructionError("waitFor must be an array of stores")
    if owner is not None and any(s is owner for s in wait_for):
        raise ConstructionError(
            f"{owner!r} cannot wait for itself; waitFor must be an array of other stores"
        )
    return tuple(wait_for)


def validate_handler_definitions(
    handler_definitions: Any,
) -> list[tuple[Any, tuple[Store, ...], Hook]]:
    """Validate the handler definitions passed to create_store.

    Args:
        handler_definitions: A list of [constant, callback] or
            [constant, wait_for, callback] entries

    Returns:
        (constant, wait_for, callback) triples in declaration order

    Raises:
        ConstructionError: On the first malformed entry
    """
    if not _is_array(handler_definitions):
        raise ConstructionError(
            "handler definitions must be an array, "
            f"got {type(handler_definitions).__name__}"
        )

    entries: list[tuple[Any, tuple[Store, ...], Hook]] = []
    for definition in handler_definitions:
        if not _is_array(definition):
            raise ConstructionError(
                "handler definition must be an array, "
                f"got {type(definition).__name__}"
            )
        if not definition or not is_constant(definition[0]):
            raise ConstructionError(
                "handler definitions must contain a constant as the first parameter"
            )
        if len(definition) < 2 or not callable(definition[-1]):
            raise ConstructionError("handler definitions must contain a callback")
        if len(definition) > 3:
            raise ConstructionError(
                "handler definition must be [constant, callback] or "
                "[constant, wait_for, callback]"
            )

        wait_for: tuple[Store, ...] = ()
        if len(definition) == 3:
            wait_for = validate_wait_for(definition[1])
        entries.append((definition[0], wait_for, definition[-1]))

    return entries


@dataclass
class HandlerRecord:
    """One store's handling of one action constant."""

    constant: Any
    wait_for: tuple[Store, ...] = ()
    callback: Hook | None = None
    before: Hook | None = None
    success: Hook | None = None
    fail: Hook | None = None
    after: Hook | None = None
    initial_state: dict[str, Any] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)

    def reset_state(self) -> None:
        self.state = snapshot(self.initial_state)


class HandlerTable:
    """Registration-ordered table of HandlerRecords keyed by constant."""

    _store: Store
    _records: list[HandlerRecord]
    _index: dict[Any, int]

    def __init__(self, store: Store) -> None:
        self._store = store
        self._records = []
        self._index = {}

    def add(self, constant: Any, definition: Any) -> HandlerRecord:
        """Register a handler for constant.

        Args:
            constant: The action constant
            definition: A mapping of hooks (see DEFINITION_KEYS), a bare
                callback, or a [wait_for, definition] pair

        Raises:
            ConstructionError: If the constant is invalid or already registered,
                or the definition is malformed
        """
        if not is_constant(constant):
            raise ConstructionError(
                f"store expects a constant to register a handler, got {constant!r}"
            )
        if constant in self._index:
            raise ConstructionError(
                f"{self._store!r} already has a handler for constant [{constant}]"
            )

        wait_for: tuple[Store, ...] = ()
        if _is_array(definition):
            if len(definition) != 2:
                raise ConstructionError(
                    "store expects a handler definition of the form "
                    "[wait_for, definition]"
                )
            wait_for = validate_wait_for(definition[0], owner=self._store)
            definition = definition[1]

        record = self._build_record(constant, wait_for, definition)
        self._index[constant] = len(self._records)
        self._records.append(record)
        logger.debug("%r registered handler for [%s]", self._store, constant)
        return record

    def _build_record(
        self, constant: Any, wait_for: tuple[Store, ...], definition: Any
    ) -> HandlerRecord:
        if callable(definition) and not isinstance(definition, Mapping):
            return HandlerRecord(constant=constant, wait_for=wait_for, callback=definition)

        if not isinstance(definition, Mapping):
            raise ConstructionError(
                "store expects a handler definition to be a mapping or a callback, "
                f"got {type(definition).__name__}"
            )

        unknown = set(definition) - DEFINITION_KEYS
        if unknown:
            raise ConstructionError(
                f"handler definition for [{constant}] has unknown keys: "
                f"{', '.join(sorted(map(str, unknown)))}"
            )
        for name in DEFINITION_KEYS:
            hook = definition.get(name)
            if hook is not None and not callable(hook):
                raise ConstructionError(
                    f"handler definition for [{constant}] '{name}' must be callable"
                )

        initial_state: dict[str, Any] = {}
        get_initial_state = definition.get("get_initial_state")
        if get_initial_state is not None:
            result = get_initial_state(self._store)
            if result is not None and not isinstance(result, Mapping):
                raise ConstructionError(
                    f"get_initial_state for [{constant}] must return a mapping, "
                    f"got {type(result).__name__}"
                )
            initial_state = dict(result or {})

        return HandlerRecord(
            constant=constant,
            wait_for=wait_for,
            callback=definition.get("callback"),
            before=definition.get("before"),
            success=definition.get("success"),
            fail=definition.get("fail"),
            after=definition.get("after"),
            initial_state=initial_state,
            state=snapshot(initial_state),
        )

    def get(self, constant: Any) -> HandlerRecord | None:
        """The record for constant, or None when nothing is registered."""
        if not is_constant(constant):
            return None
        index = self._index.get(constant)
        return None if index is None else self._records[index]

    def require(self, method: str, constant: Any) -> HandlerRecord:
        """The record for constant, raising HandlerNotFoundError on behalf of method."""
        record = self.get(constant)
        if record is None:
            raise HandlerNotFoundError(
                f"Store.{method} constant handler for [{constant}] is not defined",
                constant,
            )
        return record

    def index_of(self, constant: Any) -> int:
        if not is_constant(constant) or constant not in self._index:
            raise HandlerNotFoundError(
                f"Can not get store handler for constant [{constant}]", constant
            )
        return self._index[constant]

    def __contains__(self, constant: object) -> bool:
        return self.get(constant) is not None

    def __iter__(self) -> Iterator[HandlerRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

