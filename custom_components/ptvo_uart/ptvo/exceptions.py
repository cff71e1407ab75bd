"""Error types raised by the PTVO UART helpers."""


class PtvoUartError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(PtvoUartError, ValueError):
    """A poll interval value was rejected; no state was changed."""


class TransportError(PtvoUartError):
    """An outbound attribute write did not reach the device."""


class MissingCapabilityError(PtvoUartError):
    """The device lacks the endpoint or cluster that carries the UART."""


__all__ = [
    "PtvoUartError",
    "ValidationError",
    "TransportError",
    "MissingCapabilityError",
]
