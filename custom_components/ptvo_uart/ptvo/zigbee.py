"""zigpy bindings for the UART endpoint of a PTVO device."""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

import zigpy.types as t
from zigpy.zcl import foundation

from .exceptions import MissingCapabilityError
from .frames import MULTISTATE_VALUE_CLUSTER_ID, AttributeWrite
from .uart import AttributeCallback

LOGGER = logging.getLogger(__name__)


def format_ieee(ieee: Any) -> str:
    return str(ieee).lower()


class _AttributeListener:
    """zigpy cluster listener forwarding attribute updates."""

    def __init__(self, callback: AttributeCallback) -> None:
        self._callback = callback

    def attribute_updated(self, attrid: int, value: Any, *_args: Any) -> None:
        self._callback(int(attrid), value)


class ZigpyUartEndpoint:
    def __init__(self, endpoint: Any) -> None:
        self._endpoint = endpoint

    @property
    def endpoint_id(self) -> int:
        return self._endpoint.endpoint_id

    def _clusters(self, cluster_id: int) -> List[Any]:
        clusters = []
        for registry in (self._endpoint.in_clusters, self._endpoint.out_clusters):
            cluster = registry.get(cluster_id)
            if cluster is not None and cluster not in clusters:
                clusters.append(cluster)
        return clusters

    def supports_cluster(self, cluster_id: int) -> bool:
        return bool(self._clusters(cluster_id))

    async def write_attribute(self, request: AttributeWrite) -> None:
        """Write the request as a raw typed value, bypassing zigpy's attribute schema."""
        clusters = self._clusters(request.cluster_id)
        if not clusters:
            raise MissingCapabilityError(
                f"Cluster 0x{request.cluster_id:04X} not found on endpoint {self.endpoint_id}"
            )
        attribute = foundation.Attribute(
            attrid=request.attribute_id,
            value=foundation.TypeValue(
                type=request.zcl_type, value=t.CharacterString(request.value)
            ),
        )
        await clusters[0].write_attributes_raw([attribute])

    def add_report_listener(self, callback: AttributeCallback) -> Callable[[], None]:
        listener = _AttributeListener(callback)
        clusters = self._clusters(MULTISTATE_VALUE_CLUSTER_ID)
        for cluster in clusters:
            cluster.add_listener(listener)

        def _remove() -> None:
            for cluster in clusters:
                cluster.remove_listener(listener)

        return _remove


class ZigpyUartDevice:
    """Adapts a zigpy ``Device`` to the UART client."""

    def __init__(self, device: Any) -> None:
        self._device = device

    @property
    def identity(self) -> str:
        return format_ieee(self._device.ieee)

    def get_endpoint(self, endpoint_id: int) -> Optional[ZigpyUartEndpoint]:
        endpoint = self._device.endpoints.get(endpoint_id)
        if endpoint is None:
            return None
        return ZigpyUartEndpoint(endpoint)


class DeviceJoinListener:
    """zigpy application listener reporting (re)joins of one device."""

    def __init__(self, ieee: str, on_announce: Callable[[Any], None]) -> None:
        self._ieee = format_ieee(ieee)
        self._on_announce = on_announce

    def device_joined(self, device: Any) -> None:
        self._handle(device)

    def device_initialized(self, device: Any, *_args: Any) -> None:
        self._handle(device)

    def _handle(self, device: Any) -> None:
        if format_ieee(device.ieee) != self._ieee:
            return
        LOGGER.debug("Device %s announced itself", self._ieee)
        self._on_announce(device)


def find_device(application: Any, ieee: str) -> Optional[Any]:
    """Look up a zigpy device by its IEEE address string."""
    wanted = format_ieee(ieee)
    for device in application.devices.values():
        if format_ieee(device.ieee) == wanted:
            return device
    return None


__all__ = [
    "DeviceJoinListener",
    "ZigpyUartDevice",
    "ZigpyUartEndpoint",
    "find_device",
    "format_ieee",
]
