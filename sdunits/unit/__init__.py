from .unit import Mode, Unit, Who

__all__ = ["Mode", "Unit", "Who"]
