"""Package configuration.

Holds the default Dispatcher that create_store() registers stores with when
no dispatcher is passed explicitly.

Usage:
    from fluxstore.config import configure

    configure(dispatcher=Dispatcher())
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from fluxstore.store.Dispatcher import Dispatcher


@dataclass(frozen=True)
class FluxConfig:
    dispatcher: Dispatcher = field(default_factory=Dispatcher)


_config = FluxConfig()


def get_config() -> FluxConfig:
    return _config


def configure(**changes: Any) -> FluxConfig:
    """Replace configuration fields and return the new configuration.

    Raises:
        TypeError: On an unknown field or a dispatcher that is not a Dispatcher
    """
    global _config
    dispatcher = changes.get("dispatcher")
    if "dispatcher" in changes and not isinstance(dispatcher, Dispatcher):
        raise TypeError(f"dispatcher must be a Dispatcher, got {dispatcher!r}")
    _config = replace(_config, **changes)
    return _config


def reset_config() -> FluxConfig:
    """Restore the defaults, including a fresh default Dispatcher."""
    global _config
    _config = FluxConfig()
    return _config
