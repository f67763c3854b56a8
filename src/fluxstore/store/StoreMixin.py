"""StoreMixin - lifecycle adapter between a Store and a UI component.

The UI layer calls the three lifecycle methods at the matching phases of its
component. Between mount and unmount the adapter keeps `snapshot` current and
forwards every new snapshot to `on_state`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fluxstore.store.ChangeBus import Affects

if TYPE_CHECKING:
    from fluxstore.store.Store import Store


class StoreMixin:
    """Returned by Store.mixin()."""

    _store: Store
    _on_state: Callable[[Any], None] | None
    _selector: Callable[[dict[str, Any]], Any] | None
    snapshot: Any
    mounted: bool

    def __init__(
        self,
        store: Store,
        on_state: Callable[[Any], None] | None = None,
        selector: Callable[[dict[str, Any]], Any] | None = None,
    ) -> None:
        self._store = store
        self._on_state = on_state
        self._selector = selector
        self.snapshot = None
        self.mounted = False

    def _read(self) -> Any:
        state = self._store.to_object()
        return self._selector(state) if self._selector else state

    def component_will_mount(self) -> None:
        self.snapshot = self._read()

    def component_did_mount(self) -> None:
        if self.mounted:
            return
        self._store.on_change(self._on_store_change)
        self.mounted = True
        # catch changes made between will_mount and did_mount
        self.snapshot = self._read()

    def component_will_unmount(self) -> None:
        self._store.off_change(self._on_store_change)
        self.mounted = False

    def _on_store_change(self, affects: Affects) -> None:
        self.snapshot = self._read()
        if self._on_state is not None:
            self._on_state(self.snapshot)
