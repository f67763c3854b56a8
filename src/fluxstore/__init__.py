"""fluxstore: Flux stores with mixins, action handlers and wait_for ordering."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

try:
    __version__ = _version("fluxstore")
except PackageNotFoundError:
    # running from a source checkout that was never installed
    __version__ = "0.0.0"

from fluxstore.config import FluxConfig, configure, get_config, reset_config
from fluxstore.constants import Constants, create_constants
from fluxstore.errors import (
    ConstructionError,
    DependencyError,
    DispatchError,
    FluxError,
    HandlerNotFoundError,
)
from fluxstore.store.Dispatcher import Dispatcher
from fluxstore.store.DispatchCycle import DispatchCycle
from fluxstore.store.Store import Store, create_store
from fluxstore.store.StoreMixin import StoreMixin

__all__ = [
    "Constants",
    "ConstructionError",
    "DependencyError",
    "DispatchError",
    "DispatchCycle",
    "Dispatcher",
    "FluxConfig",
    "FluxError",
    "HandlerNotFoundError",
    "Store",
    "StoreMixin",
    "configure",
    "create_constants",
    "create_store",
    "get_config",
    "reset_config",
]
