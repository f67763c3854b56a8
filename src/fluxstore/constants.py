"""Namespaced action constants.

Every call to create_constants() returns a fresh mapping; there is no global
registry of constants.

Usage:
    constants = create_constants(["LOGIN", "LOGOUT"], "USER")
    constants.LOGIN      # "USER_LOGIN"
    constants["LOGOUT"]  # "USER_LOGOUT"
"""

from __future__ import annotations

from collections.abc import Iterable


class Constants(dict[str, str]):
    """A dict of constant name -> namespaced constant, with attribute access."""

    def __getattr__(self, name: str) -> str:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"No constant named '{name}'") from None

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Constants are read-only; use create_constants()")


def create_constants(names: Iterable[str], namespace: str | None = None) -> Constants:
    """Build namespaced constants for a list of action names.

    Args:
        names: Action names, e.g. ["ONE", "TWO"]
        namespace: Optional prefix joined with an underscore

    Returns:
        A new Constants mapping, e.g. {"ONE": "STORE_ONE", "TWO": "STORE_TWO"}

    Raises:
        TypeError: If names is a string or contains a non-string / empty name
        ValueError: If a name is repeated
    """
    if isinstance(names, str):
        raise TypeError("create_constants expects a list of names, not a string")

    prefix = f"{namespace}_" if namespace else ""
    constants = Constants()
    for name in names:
        if not isinstance(name, str) or not name:
            raise TypeError(f"Constant names must be non-empty strings, got {name!r}")
        if name in constants:
            raise ValueError(f"Constant '{name}' is defined more than once")
        constants[name] = f"{prefix}{name}"
    return constants
