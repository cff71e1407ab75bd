"""Frame codec for the PTVO UART channel that carries the ultrasonic sensor."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

import voluptuous as vol

from .exceptions import ValidationError

if TYPE_CHECKING:
    from .poller import PollConfig

# UART bridge layout used by the PTVO firmware
UART_ENDPOINT_ID = 4
MULTISTATE_VALUE_CLUSTER_ID = 0x0012  # genMultistateValue
STATE_TEXT_ATTRIBUTE_ID = 0x000E
ZCL_TYPE_OCTET_STR = 0x41
ZCL_TYPE_CHAR_STR = 0x42

CHANNEL_DISTANCE = "distance"
CHANNEL_TEMPERATURE = "temperature"
CHANNEL_POLL_INTERVAL = "poll_interval"
STATE_ACTION = "action"

CHANNELS: Tuple[str, ...] = (CHANNEL_DISTANCE, CHANNEL_TEMPERATURE, CHANNEL_POLL_INTERVAL)

# Single character commands understood by the sensor sketch
REQUEST_CODES: Dict[str, str] = {
    CHANNEL_DISTANCE: "U",
    CHANNEL_TEMPERATURE: "P",
}

TEMPERATURE_OFFSET = 45
MAX_DISTANCE_MM = 11000
PRINTABLE_MIN = 32
PRINTABLE_MAX = 127

DEFAULT_POLL_INTERVAL = 15
MIN_POLL_INTERVAL = 2

RawPayload = Union[bytes, bytearray, memoryview, str, Sequence[int]]


@dataclass(frozen=True)
class TemperatureFrame:
    celsius: int

    def to_state(self) -> Dict[str, Any]:
        return {CHANNEL_TEMPERATURE: self.celsius}


@dataclass(frozen=True)
class DistanceFrame:
    millimeters: Optional[int]

    def to_state(self) -> Dict[str, Any]:
        return {CHANNEL_DISTANCE: self.millimeters}


@dataclass(frozen=True)
class TextFrame:
    text: str

    def to_state(self) -> Dict[str, Any]:
        return {STATE_ACTION: self.text}


@dataclass(frozen=True)
class BytesFrame:
    values: Tuple[int, ...]

    def to_state(self) -> Dict[str, Any]:
        return {STATE_ACTION: list(self.values)}


Frame = Union[TemperatureFrame, DistanceFrame, TextFrame, BytesFrame]


@dataclass(frozen=True)
class AttributeWrite:
    """A single typed attribute write on the UART cluster."""

    cluster_id: int
    attribute_id: int
    value: str
    zcl_type: int


def is_printable(payload: bytes) -> bool:
    """Return True when every byte falls inside the printable ASCII window."""
    return all(PRINTABLE_MIN <= code <= PRINTABLE_MAX for code in payload)


def normalize_payload(value: RawPayload) -> bytes:
    """Coerce the attribute value reported by the stack into raw bytes."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return value.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ValueError(f"UART text {value!r} is not single-byte encodable") from exc
    try:
        return bytes(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unsupported UART payload {value!r}") from exc


def decode_frame(payload: bytes) -> Frame:
    """Interpret a raw UART payload.

    Dispatch depends on the payload length only: one byte is a temperature
    reading, two bytes a big-endian distance, anything else is passed through
    as text when printable and as a list of byte values otherwise.
    """
    if len(payload) == 1:
        return TemperatureFrame(payload[0] - TEMPERATURE_OFFSET)

    if len(payload) == 2:
        distance = 256 * payload[0] + payload[1]
        return DistanceFrame(None if distance > MAX_DISTANCE_MM else distance)

    if is_printable(payload):
        return TextFrame(payload.decode("latin-1"))
    return BytesFrame(tuple(payload))


def decode_report(
    payload: RawPayload,
    desired_interval: Optional[float] = None,
    config: Optional["PollConfig"] = None,
) -> Frame:
    """Decode an inbound report after syncing the poll cadence.

    The last requested poll interval is pushed back into the live poll config
    so a scheduler restarted by a re-join keeps the user's cadence.
    """
    if desired_interval is not None and config is not None:
        config.interval_seconds = desired_interval
    return decode_frame(normalize_payload(payload))


def build_request(channel: str) -> Optional[AttributeWrite]:
    """Return the attribute write that asks the sensor for a fresh value.

    ``poll_interval`` is handled locally and produces no write.
    """
    if channel == CHANNEL_POLL_INTERVAL:
        return None
    code = REQUEST_CODES.get(channel)
    if code is None:
        raise ValueError(f"Unknown UART channel {channel!r}")
    return AttributeWrite(
        cluster_id=MULTISTATE_VALUE_CLUSTER_ID,
        attribute_id=STATE_TEXT_ATTRIBUTE_ID,
        value=code,
        zcl_type=ZCL_TYPE_CHAR_STR,
    )


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise vol.Invalid("expected a number")
    return value


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise vol.CoerceInvalid("expected float") from exc


def _finite(value: float) -> float:
    if not math.isfinite(value):
        raise vol.Invalid("not a finite number")
    return value


POLL_INTERVAL_SCHEMA = vol.Schema(
    vol.All(
        _reject_bool,
        _to_float,
        _finite,
        vol.Range(
            min=MIN_POLL_INTERVAL,
            msg=f"should be not less than {MIN_POLL_INTERVAL} seconds",
        ),
    )
)


def validate_poll_interval(value: Any) -> Union[int, float]:
    """Validate a requested poll interval and return it in seconds."""
    try:
        seconds = POLL_INTERVAL_SCHEMA(value)
    except vol.Invalid as exc:
        raise ValidationError(f"Invalid poll interval {value!r}: {exc.msg}") from exc
    return int(seconds) if seconds.is_integer() else seconds


def format_frame(frame: Frame) -> str:
    """Human readable one-liner used by logs and the CLI."""
    if isinstance(frame, TemperatureFrame):
        return f"temperature {frame.celsius} °C"
    if isinstance(frame, DistanceFrame):
        if frame.millimeters is None:
            return "distance out of range"
        return f"distance {frame.millimeters} mm"
    if isinstance(frame, TextFrame):
        return f"text {frame.text!r}"
    values: List[str] = [f"{value:02X}" for value in frame.values]
    return f"bytes [{' '.join(values)}]"


__all__ = [
    "AttributeWrite",
    "BytesFrame",
    "CHANNELS",
    "CHANNEL_DISTANCE",
    "CHANNEL_POLL_INTERVAL",
    "CHANNEL_TEMPERATURE",
    "DEFAULT_POLL_INTERVAL",
    "DistanceFrame",
    "Frame",
    "MIN_POLL_INTERVAL",
    "MULTISTATE_VALUE_CLUSTER_ID",
    "STATE_ACTION",
    "STATE_TEXT_ATTRIBUTE_ID",
    "TemperatureFrame",
    "TextFrame",
    "UART_ENDPOINT_ID",
    "ZCL_TYPE_CHAR_STR",
    "build_request",
    "decode_frame",
    "decode_report",
    "format_frame",
    "normalize_payload",
    "validate_poll_interval",
]
