"""DispatchCycle - one delivery of one action to a set of stores.

Each store's run of the cycle is a task created on first request and
memoized, so a store waited on by several others still runs its handler once.
Dependents join on those tasks; a failed dependency fails the dependent with
DependencyError.
"""

# pyright: reportPrivateUsage=false
# The cycle reads Store._handlers to walk wait_for edges.

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Self

from fluxstore.errors import DependencyError

if TYPE_CHECKING:
    from fluxstore.store.Store import Store

logger = logging.getLogger(__name__)

# The cycle whose handler is running in the current task. Tasks started from a
# handler inherit it through their copied context.
active_cycle: ContextVar[DispatchCycle | None] = ContextVar("active_cycle", default=None)


class DispatchCycle:
    """Settlement barrier for one (constant, payload) dispatch.

    Usage:
        cycle = DispatchCycle(constants.LOGIN, {"username": "mustermann"})
        await cycle.run(stores)
        cycle.failures  # {store: exception} for stores whose handler failed
    """

    constant: Any
    payload: Any
    _settlements: dict[Store, asyncio.Task[Any]]

    def __init__(self, constant: Any, payload: Any = None) -> None:
        self.constant = constant
        self.payload = payload
        self._settlements = {}

    def settle(self, store: Store) -> asyncio.Task[Any]:
        """The task that settles store for this cycle, started on first call."""
        task = self._settlements.get(store)
        if task is None:
            task = asyncio.ensure_future(store._run_cycle(self))
            self._settlements[store] = task
        return task

    async def wait_for(self, waiter: Store, stores: Sequence[Store]) -> None:
        """Block until every store in stores has settled this cycle.

        Raises:
            DependencyError: If a store waits on waiter for this constant,
                directly or transitively, or if any awaited store failed
        """
        for dependency in stores:
            if self._waits_on(dependency, waiter):
                raise DependencyError(
                    f"{waiter!r} and {dependency!r} wait for each other "
                    f"on [{self.constant}]",
                    waiter,
                    dependency,
                    self.constant,
                )

        results = await asyncio.gather(
            *(self.settle(store) for store in stores), return_exceptions=True
        )
        for dependency, result in zip(stores, results):
            if isinstance(result, BaseException):
                raise DependencyError(
                    f"{waiter!r} waited for {dependency!r} on [{self.constant}], "
                    f"which failed: {result}",
                    waiter,
                    dependency,
                    self.constant,
                ) from result

    def _waits_on(self, store: Store, target: Store) -> bool:
        """Does store reach target through wait_for edges for this constant?"""
        stack = [store]
        seen: set[int] = set()
        while stack:
            current = stack.pop()
            if current is target:
                return True
            if id(current) in seen:
                continue
            seen.add(id(current))
            record = current._handlers.get(self.constant)
            if record is not None:
                stack.extend(record.wait_for)
        return False

    async def run(self, stores: Iterable[Store]) -> Self:
        """Settle every store and wait for all of them, failed or not."""
        tasks = [self.settle(store) for store in stores]
        logger.debug("Dispatching [%s] to %d stores", self.constant, len(tasks))
        await asyncio.gather(*tasks, return_exceptions=True)
        return self

    @property
    def results(self) -> dict[Store, Any]:
        """Handler results of the stores that settled successfully."""
        return {
            store: task.result()
            for store, task in self._settlements.items()
            if task.done() and not task.cancelled() and task.exception() is None
        }

    @property
    def failures(self) -> dict[Store, BaseException]:
        """Errors of the stores whose run of this cycle failed."""
        failures: dict[Store, BaseException] = {}
        for store, task in self._settlements.items():
            if not task.done():
                continue
            if task.cancelled():
                failures[store] = asyncio.CancelledError()
                continue
            error = task.exception()
            if error is not None:
                failures[store] = error
        return failures

    def __repr__(self) -> str:
        return f"DispatchCycle([{self.constant}], {len(self._settlements)} stores)"
