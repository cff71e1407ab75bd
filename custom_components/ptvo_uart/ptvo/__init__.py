"""Public package surface for the PTVO UART rangefinder helpers.

The `ptvo` package decodes and encodes the frames exchanged with the
ultrasonic sensor (see :mod:`ptvo.frames`), runs the per-device poll loop
(:mod:`ptvo.poller`) and binds both to a Zigbee endpoint through
:mod:`ptvo.uart` and the zigpy adapter in :mod:`ptvo.zigbee`.
"""

from .exceptions import (
    MissingCapabilityError,
    PtvoUartError,
    TransportError,
    ValidationError,
)
from .frames import (  # noqa: F401
    CHANNEL_DISTANCE,
    CHANNEL_POLL_INTERVAL,
    CHANNEL_TEMPERATURE,
    CHANNELS,
    DEFAULT_POLL_INTERVAL,
    MIN_POLL_INTERVAL,
    STATE_ACTION,
    UART_ENDPOINT_ID,
    AttributeWrite,
    BytesFrame,
    DistanceFrame,
    Frame,
    TemperatureFrame,
    TextFrame,
    build_request,
    decode_frame,
    decode_report,
    format_frame,
    normalize_payload,
    validate_poll_interval,
)
from .poller import (
    EVENT_DEVICE_ANNOUNCE,
    EVENT_START,
    EVENT_STOP,
    PollConfig,
    PollRegistry,
    PollScheduler,
    PollState,
)
from .uart import PtvoUartClient
from .zigbee import DeviceJoinListener, ZigpyUartDevice, find_device

__all__ = [
    "CHANNEL_DISTANCE",
    "CHANNEL_POLL_INTERVAL",
    "CHANNEL_TEMPERATURE",
    "CHANNELS",
    "DEFAULT_POLL_INTERVAL",
    "EVENT_DEVICE_ANNOUNCE",
    "EVENT_START",
    "EVENT_STOP",
    "MIN_POLL_INTERVAL",
    "STATE_ACTION",
    "UART_ENDPOINT_ID",
    "AttributeWrite",
    "BytesFrame",
    "DeviceJoinListener",
    "DistanceFrame",
    "Frame",
    "MissingCapabilityError",
    "PollConfig",
    "PollRegistry",
    "PollScheduler",
    "PollState",
    "PtvoUartClient",
    "PtvoUartError",
    "TemperatureFrame",
    "TextFrame",
    "TransportError",
    "ValidationError",
    "ZigpyUartDevice",
    "build_request",
    "decode_frame",
    "decode_report",
    "find_device",
    "format_frame",
    "normalize_payload",
    "validate_poll_interval",
]
