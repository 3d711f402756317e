from .subscription import SignalSubscription

__all__ = ["SignalSubscription"]
