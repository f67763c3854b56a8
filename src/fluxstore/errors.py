"""Custom error types for fluxstore."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fluxstore.store.Store import Store


class FluxError(Exception):
    """Base error for all fluxstore errors."""


class ConstructionError(FluxError, ValueError):
    """Raised when a store, mixin or handler definition is malformed.

    Always raised synchronously from create_store() or add_action_handler(),
    before the store is handed to any caller or dispatcher.
    """


class HandlerNotFoundError(FluxError, LookupError):
    """Raised when a constant has no handler registered on a store."""

    def __init__(self, message: str, constant: Any = None) -> None:
        super().__init__(message)
        self.constant = constant


class DependencyError(FluxError):
    """Raised inside a dispatch cycle when a wait_for dependency cannot settle."""

    def __init__(
        self, message: str, store: Store, dependency: Store, constant: Any
    ) -> None:
        super().__init__(message)
        self.store = store
        self.dependency = dependency
        self.constant = constant


class DispatchError(FluxError, RuntimeError):
    """Raised when an action is dispatched from inside a running dispatch cycle.

    The outer cycle holds the store locks the nested one would need.
    """

    def __init__(self, message: str, constant: Any, active_constant: Any) -> None:
        super().__init__(message)
        self.constant = constant
        self.active_constant = active_constant
