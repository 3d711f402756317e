# sdunits/utils/errors.py
class SdunitsError(RuntimeError):
    """Base class of every error raised by sdunits."""


class TransportFailure(SdunitsError):
    """
    A round trip to the remote service failed.
    Surfaced to the caller of the operation that triggered it, never retried here.
    """


class TypeMismatch(SdunitsError, TypeError):
    """A property was requested as a type other than its tag."""

    def __init__(self, key: str, expected, actual):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"property {key!r} is {actual}, requested as {expected}")


class UnknownKey(SdunitsError, LookupError):
    """The remote interface does not expose this property."""

    def __init__(self, key: str, interface: str = ""):
        self.key = key
        self.interface = interface
        where = f" on {interface}" if interface else ""
        super().__init__(f"unknown property {key!r}{where}")


class DecodeFailure(SdunitsError):
    """
    A notification (or one of its values) could not be decoded.
    The event is dropped; the cache stays at its last good state.
    """


class ListenerFailure(SdunitsError):
    """A state listener raised during dispatch. Isolated to that listener."""

    def __init__(self, listener, cause: BaseException):
        self.listener = listener
        self.cause = cause
        name = getattr(listener, "__qualname__", repr(listener))
        super().__init__(f"listener {name} failed: {cause!r}")


class InvalidUnitName(SdunitsError, ValueError):
    """Raised for empty or otherwise unusable unit names."""
