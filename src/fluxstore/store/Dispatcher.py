"""Dispatcher - delivers actions to registered stores.

Every dispatch is one DispatchCycle: all registered stores are settled
concurrently, ordered only by their wait_for declarations. One store's failure
never stops the others; failures are logged and reported on the cycle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from fluxstore.errors import DispatchError
from fluxstore.store.DispatchCycle import DispatchCycle, active_cycle
from fluxstore.store.HandlerTable import is_constant

if TYPE_CHECKING:
    from fluxstore.store.Store import Store

logger = logging.getLogger(__name__)


class Dispatcher:
    """Registry of stores plus the dispatch entry point.

    Usage:
        dispatcher = Dispatcher()
        store = create_store(definition, handlers, dispatcher=dispatcher)

        cycle = await dispatcher.dispatch(constants.LOGIN, {"username": "mustermann"})
        if cycle.failures:
            ...
    """

    _stores: list[Store]

    def __init__(self) -> None:
        self._stores = []

    def register(self, store: Store) -> None:
        """Add store to the dispatch list. Registering twice is a no-op."""
        if any(s is store for s in self._stores):
            return
        self._stores.append(store)
        logger.debug("Registered %r", store)

    def unregister(self, store: Store) -> None:
        """Remove store from the dispatch list. Unknown stores are ignored."""
        self._stores = [s for s in self._stores if s is not store]

    @property
    def stores(self) -> tuple[Store, ...]:
        return tuple(self._stores)

    async def dispatch(self, constant: Any, payload: Any = None) -> DispatchCycle:
        """Deliver (constant, payload) to every registered store.

        Returns once every store has settled. Stores without a handler for
        constant settle immediately.

        Raises:
            TypeError: If constant is not a valid constant
            DispatchError: If called from inside a handler of a running cycle
        """
        if not is_constant(constant):
            raise TypeError(f"dispatch expects a constant, got {constant!r}")
        running = active_cycle.get()
        if running is not None:
            raise DispatchError(
                f"Cannot dispatch [{constant}] in the middle of dispatching "
                f"[{running.constant}]",
                constant,
                running.constant,
            )

        cycle = DispatchCycle(constant, payload)
        await cycle.run(self._stores)

        for store, error in cycle.failures.items():
            logger.warning(
                "%r failed to handle [%s]",
                store,
                constant,
                exc_info=(type(error), error, error.__traceback__),
            )
        return cycle

    def dispatch_sync(self, constant: Any, payload: Any = None) -> DispatchCycle:
        """Run dispatch() to completion on a fresh event loop.

        Raises:
            RuntimeError: If called while an event loop is running
        """
        return asyncio.run(self.dispatch(constant, payload))
