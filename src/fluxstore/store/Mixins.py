"""Mixin resolution for store definitions.

A store definition and each of its mixins are plain mappings. Resolution
flattens the mixin tree depth-first (a mixin's own mixins come before the
mixin itself, the top-level definition comes last) and folds the sources:

- ordinary members: later sources overwrite earlier ones
- get_initial_state: every result is shallow-merged, later keys win
- store_did_mount: every hook is kept and called once, in order

Usage:
    resolved = resolve_definition(definition, reserved=RESERVED_NAMES)
    for name, member in resolved.members.items():
        ...
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fluxstore.errors import ConstructionError

if TYPE_CHECKING:
    from fluxstore.store.Store import Store

type Definition = Mapping[str, Any]

SPECIAL_KEYS: frozenset[str] = frozenset(
    {"mixins", "get_initial_state", "store_did_mount", "display_name"}
)


@dataclass
class ResolvedDefinition:
    """The flattened result of a definition and all of its mixins."""

    sources: list[Definition] = field(default_factory=list)
    members: dict[str, Any] = field(default_factory=dict)
    initial_state_fns: list[Callable[[Store], Mapping[str, Any]]] = field(
        default_factory=list
    )
    did_mount_fns: list[Callable[[Store], None]] = field(default_factory=list)
    display_name: str | None = None


def _source_mapping(source: Any) -> Definition:
    """Return the definition mapping behind a mixin (a mapping or a Store)."""
    from fluxstore.store.Store import Store

    if isinstance(source, Store):
        return source.definition
    if isinstance(source, Mapping):
        return source
    raise ConstructionError(
        f"mixins must be mappings or stores, got {type(source).__name__}"
    )


def _describe(source: Definition) -> str:
    name = source.get("display_name")
    return repr(name) if name else f"<mixin at {id(source):#x}>"


def flatten_mixins(definition: Definition) -> list[Definition]:
    """Depth-first list of every source, the definition itself last.

    A mixin reached through several branches appears once, at its first
    position. A mixin that includes itself, directly or transitively, raises
    ConstructionError.
    """
    ordered: list[Definition] = []
    seen: set[int] = set()
    path: list[int] = []

    def visit(source: Definition) -> None:
        key = id(source)
        if key in path:
            raise ConstructionError(
                f"cyclic mixin graph: {_describe(source)} includes itself"
            )
        if key in seen:
            return

        mixins = source.get("mixins", ())
        if mixins is None:
            mixins = ()
        if isinstance(mixins, str) or not isinstance(mixins, Sequence):
            raise ConstructionError(
                f"mixins must be an array, got {type(mixins).__name__}"
            )

        path.append(key)
        for mixin in mixins:
            visit(_source_mapping(mixin))
        path.pop()

        seen.add(key)
        ordered.append(source)

    visit(_source_mapping(definition))
    return ordered


def resolve_definition(
    definition: Definition, reserved: frozenset[str] = frozenset()
) -> ResolvedDefinition:
    """Flatten a definition and fold its sources into one ResolvedDefinition.

    Args:
        definition: The top-level store definition
        reserved: Names a mixin member may not use (the store facade)

    Raises:
        ConstructionError: On cycles, malformed mixins or reserved names
    """
    resolved = ResolvedDefinition(sources=flatten_mixins(definition))

    for source in resolved.sources:
        for name, member in source.items():
            if not isinstance(name, str):
                raise ConstructionError(
                    f"definition member names must be strings, got {name!r}"
                )
            if name == "get_initial_state":
                if member is not None:
                    _require_callable(source, name, member)
                    resolved.initial_state_fns.append(member)
            elif name == "store_did_mount":
                if member is not None:
                    _require_callable(source, name, member)
                    resolved.did_mount_fns.append(member)
            elif name == "display_name":
                if member is not None:
                    resolved.display_name = str(member)
            elif name == "mixins":
                continue
            elif name.startswith("__") or name in reserved:
                raise ConstructionError(
                    f"{_describe(source)} cannot define '{name}': "
                    "the name is reserved by the store"
                )
            else:
                resolved.members[name] = member

    return resolved


def merge_initial_state(resolved: ResolvedDefinition, store: Store) -> dict[str, Any]:
    """Call every get_initial_state in resolution order and merge the results."""
    merged: dict[str, Any] = {}
    for fn in resolved.initial_state_fns:
        state = fn(store)
        if state is None:
            continue
        if not isinstance(state, Mapping):
            raise ConstructionError(
                f"get_initial_state must return a mapping, got {type(state).__name__}"
            )
        merged.update(state)
    return merged


def _require_callable(source: Definition, name: str, member: Any) -> None:
    if not callable(member):
        raise ConstructionError(f"{_describe(source)} '{name}' must be callable")
