"""StateContainer - the key/value state owned by a Store.

Each mutating call produces one Delta and hands it to the owner's notify
callback; the owner decides how it reaches subscribers (immediately, or
folded into a batch).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from deepdiff import DeepDiff, Delta

from fluxstore.store.snapshot import diff_image, snapshot

type StateMapping = Mapping[str, Any]
type NotifyCallback = Callable[[Delta], None]


def diff_states(old: Any, new: Any) -> Delta:
    """Delta between two state images. Empty Delta when they are equal."""
    diff = DeepDiff(old, new)
    if not diff:
        return Delta({})
    return Delta(diff)


def check_mapping(owner: str, values: Any) -> None:
    if not isinstance(values, Mapping):
        raise TypeError(f"{owner} expects a mapping, got {type(values).__name__}")


class StateContainer:
    """Shallow key/value state with copy-on-read serialization.

    Keys that were never initialized or set read as None.
    """

    _values: dict[str, Any]
    _notify: NotifyCallback | None

    def __init__(
        self, initial: StateMapping | None = None, notify: NotifyCallback | None = None
    ) -> None:
        self._values = dict(initial) if initial else {}
        self._notify = notify

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, values: StateMapping) -> None:
        """Shallow-merge values into the state. One notification per call.

        An empty mapping is a no-op and notifies nobody.
        """
        check_mapping("StateContainer.set", values)
        if not values:
            return
        # only the written keys can change, so only they are compared
        before = diff_image({k: self._values[k] for k in values if k in self._values})
        self._values.update(values)
        self._emit(diff_states(before, diff_image({k: self._values[k] for k in values})))

    def replace(self, values: StateMapping) -> None:
        """Discard every key and install values as the new state."""
        check_mapping("StateContainer.replace", values)
        before = self.image()
        self._values = dict(values)
        self._emit(diff_states(before, self.image()))

    def install(self, values: StateMapping) -> None:
        """Seed the state without notifying. Used once, at store construction."""
        self._values = dict(values)

    def image(self) -> dict[str, Any]:
        """Copy of the state for change detection. See snapshot.diff_image."""
        return diff_image(self._values)

    def _emit(self, delta: Delta) -> None:
        if self._notify is not None:
            self._notify(delta)

    def to_js(self) -> dict[str, Any]:
        return snapshot(self._values)

    def to_object(self) -> dict[str, Any]:
        return snapshot(self._values)

    def to_json(self) -> dict[str, Any]:
        return snapshot(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"StateContainer({self._values!r})"
