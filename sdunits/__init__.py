#!filepath: sdunits/__init__.py

from .utils.logger import Logging, logs
from .utils.errors import (
    DecodeFailure,
    InvalidUnitName,
    ListenerFailure,
    SdunitsError,
    TransportFailure,
    TypeMismatch,
    UnknownKey,
)
from .config.app_config import AppConfig
from .core.types import PropertyType, PropertyValue
from .core.state import StateTuple
from .naming import UnitKind
from .unit.unit import Mode, Unit, Who
from .manager.manager import Manager
from .systemd import Systemd

__version__ = "0.1.0"

__all__ = [
    "logs", "Logging",
    "AppConfig",
    "SdunitsError", "TransportFailure", "TypeMismatch", "UnknownKey",
    "DecodeFailure", "ListenerFailure", "InvalidUnitName",
    "PropertyType", "PropertyValue", "StateTuple",
    "UnitKind", "Mode", "Who", "Unit",
    "Manager", "Systemd",
]
