"""Change notification for Store."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence

from deepdiff import Delta, parse_path

type Affects = Callable[[str | Sequence[str]], bool]

# Listener receives an `affects` function to check if a path was changed
type ChangeListener = Callable[[Affects], None]


def _delta_path_parts(delta_path: str) -> tuple[str, ...]:
    """Split a DeepDiff path like root['data']['name'] into ('data', 'name')."""
    return tuple(str(p) for p in parse_path(delta_path))


def _is_prefix(prefix: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    return parts[: len(prefix)] == prefix


def _matches_dotted(parts: tuple[str, ...], path: str) -> bool:
    # compare joined strings so a key containing a dot is never split
    for i in range(1, len(parts) + 1):
        if ".".join(parts[:i]) == path:
            return True
    return bool(parts) and path.startswith(".".join(parts) + ".")


def make_affects(*deltas: Delta) -> Affects:
    """Create an `affects` helper from the Deltas of one change event.

    Args:
        deltas: The Deltas describing one change event

    Returns:
        Function that takes a path and returns True if that path was changed
    """
    changed: set[tuple[str, ...]] = set()
    for delta in deltas:
        if not delta.diff:
            continue
        for change_type in delta.diff.values():
            # dict for value changes, ordered set of paths for some removals
            if isinstance(change_type, str):
                continue
            for delta_path in change_type:
                if isinstance(delta_path, str):
                    changed.add(_delta_path_parts(delta_path))

    def affects(path: str | Sequence[str]) -> bool:
        """Check if a path was affected by this change.

        Args:
            path: Dot-notation path like "user.name", a bare key like "user",
                or a sequence of keys like ("config", "a.b") for keys that
                themselves contain dots

        Returns:
            True if the path, one of its parents, or one of its children changed
        """
        if isinstance(path, str):
            return any(_matches_dotted(parts, path) for parts in changed)
        query = tuple(str(p) for p in path)
        return any(_is_prefix(parts, query) or _is_prefix(query, parts) for parts in changed)

    return affects


class ChangeBus:
    """Ordered list of change listeners.

    The same listener may be added more than once and is then called once per
    registration. remove() drops every registration of the listener.
    """

    _listeners: list[ChangeListener]

    def __init__(self) -> None:
        self._listeners = []

    def append(self, listener: ChangeListener) -> None:
        """Add a change listener."""
        if not callable(listener):
            raise TypeError(f"Change listener must be callable, got {listener!r}")
        self._listeners.append(listener)

    def remove(self, listener: ChangeListener) -> None:
        """Remove every registration of listener. Unknown listeners are ignored."""
        self._listeners = [cb for cb in self._listeners if cb != listener]

    def emit(self, *deltas: Delta) -> None:
        """Call every current listener once with an `affects` helper for deltas.

        A listener removed by an earlier listener during this emit is skipped.
        """
        affects = make_affects(*deltas)
        for listener in list(self._listeners):
            if listener in self._listeners:
                listener(affects)

    def __iter__(self) -> Iterator[ChangeListener]:
        return iter(self._listeners)

    def __len__(self) -> int:
        return len(self._listeners)
