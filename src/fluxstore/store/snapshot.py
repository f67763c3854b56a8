"""Snapshot utility for creating deep copies of store state.

Every serialized view a store hands out (to_js/to_object/to_json, action
state, the UI adapter snapshot) goes through snapshot(), so callers never hold
the live mapping. Change detection compares diff_image() results instead.

State may hold values that cannot be deep-copied (locks, generators, client
handles). Those are shared by snapshot() and replaced by an identity token in
diff_image(), so one such value never blocks copying the rest of the state.

The current implementation uses `copy.deepcopy`. To swap the copy mechanism,
modify `_copy()`.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any


def _copy(state: Any, leaf: Callable[[Any], Any]) -> Any:
    try:
        return copy.deepcopy(state)
    except (TypeError, copy.Error):
        pass
    # retry per item so only the uncopyable values fall through to leaf
    if isinstance(state, dict):
        return {key: _copy(value, leaf) for key, value in state.items()}
    if type(state) in (list, tuple):
        return type(state)(_copy(value, leaf) for value in state)
    return leaf(state)


def _share(value: Any) -> Any:
    return value


def _identity_token(value: Any) -> str:
    return f"<{type(value).__name__} at {id(value):#x}>"


def snapshot[S](state: S) -> S:
    """Create a deep copy of the state.

    Args:
        state: The state object to snapshot

    Returns:
        A deep copy of the state that later mutations cannot reach. Values
        that cannot be deep-copied are shared with the original.
    """
    return _copy(state, _share)


def diff_image(state: Any) -> Any:
    """Deep copy of state for change detection.

    Uncopyable values become a token naming their type and identity, so
    swapping one for another object still shows up as a change.
    """
    return _copy(state, _identity_token)
