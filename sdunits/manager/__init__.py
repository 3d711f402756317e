from .manager import Manager
from .registry import UnitRegistry

__all__ = ["Manager", "UnitRegistry"]
