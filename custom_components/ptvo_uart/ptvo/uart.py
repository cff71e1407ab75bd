"""Client that binds the UART frame codec to one device endpoint."""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Optional, Protocol

from .exceptions import MissingCapabilityError, TransportError
from .frames import (
    MULTISTATE_VALUE_CLUSTER_ID,
    STATE_TEXT_ATTRIBUTE_ID,
    UART_ENDPOINT_ID,
    AttributeWrite,
    build_request,
    normalize_payload,
)

PayloadCallback = Callable[[bytes], None]
AttributeCallback = Callable[[int, Any], None]

LOGGER = logging.getLogger(__name__)


class UartEndpoint(Protocol):
    """Endpoint surface the client needs from the field-bus stack."""

    def supports_cluster(self, cluster_id: int) -> bool:
        ...

    async def write_attribute(self, request: AttributeWrite) -> None:
        ...

    def add_report_listener(self, callback: AttributeCallback) -> Callable[[], None]:
        ...


class UartDevice(Protocol):
    @property
    def identity(self) -> Hashable:
        ...

    def get_endpoint(self, endpoint_id: int) -> Optional[UartEndpoint]:
        ...


class PtvoUartClient:
    """Sends value requests to the sensor and hands inbound UART payloads on."""

    def __init__(self, device: UartDevice, *, endpoint_id: int = UART_ENDPOINT_ID) -> None:
        self._device = device
        self.endpoint_id = endpoint_id
        self._payload_callback: Optional[PayloadCallback] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def device_id(self) -> Hashable:
        return self._device.identity

    async def request_value(self, channel: str) -> None:
        """Ask the sensor to report ``channel``; no-op for local-only channels."""
        request = build_request(channel)
        if request is None:
            return
        endpoint = self._require_endpoint()
        LOGGER.debug("Requesting %s from %s (%r)", channel, self.device_id, request.value)
        try:
            await endpoint.write_attribute(request)
        except Exception as exc:
            raise TransportError(
                f"Failed to request {channel} from {self.device_id}: {exc}"
            ) from exc

    def subscribe_reports(self, payload_callback: PayloadCallback) -> None:
        """Receive every UART payload reported by the device."""
        if self._unsubscribe is not None:
            raise RuntimeError("UART reports already subscribed")
        endpoint = self._require_endpoint()
        self._payload_callback = payload_callback
        self._unsubscribe = endpoint.add_report_listener(self._handle_attribute)

    def unsubscribe_reports(self) -> None:
        unsubscribe = self._unsubscribe
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        finally:
            self._unsubscribe = None
            self._payload_callback = None

    def _require_endpoint(self) -> UartEndpoint:
        endpoint = self._device.get_endpoint(self.endpoint_id)
        if endpoint is None or not endpoint.supports_cluster(MULTISTATE_VALUE_CLUSTER_ID):
            raise MissingCapabilityError(
                f"Expected to have endpoint with id={self.endpoint_id} configured as UART one"
            )
        return endpoint

    def _handle_attribute(self, attribute_id: int, value: Any) -> None:
        if attribute_id != STATE_TEXT_ATTRIBUTE_ID:
            return
        try:
            payload = normalize_payload(value)
        except ValueError as exc:
            LOGGER.warning("UART report from %s could not be parsed: %s", self.device_id, exc)
            return

        callback = self._payload_callback
        if callback is None:
            return
        callback(payload)


__all__ = ["PtvoUartClient", "UartDevice", "UartEndpoint"]
