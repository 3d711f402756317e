from .dispatcher import StateChangeDispatcher, StateListener

__all__ = ["StateChangeDispatcher", "StateListener"]
