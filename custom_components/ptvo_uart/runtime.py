"""Runtime that bridges the PTVO UART rangefinder into Home Assistant."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ConfigEntryError, ConfigEntryNotReady
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.util import dt as dt_util

from .ptvo import (
    CHANNEL_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL,
    EVENT_DEVICE_ANNOUNCE,
    EVENT_START,
    EVENT_STOP,
    UART_ENDPOINT_ID,
    DeviceJoinListener,
    MissingCapabilityError,
    PollScheduler,
    PollState,
    PtvoUartClient,
    TransportError,
    ZigpyUartDevice,
    decode_report,
    find_device,
    format_frame,
)
from .ptvo.zigbee import format_ieee

from .const import CONF_DEVICE_NAME, CONF_ENDPOINT_ID, CONF_IEEE, DOMAIN

LOGGER = logging.getLogger(__name__)


def get_zigpy_application(hass: HomeAssistant) -> Any:
    """Return the zigpy application controller owned by ZHA."""
    # zha pulls in its radio stack on import
    from homeassistant.components.zha.helpers import get_zha_gateway

    return get_zha_gateway(hass).application_controller


class PtvoUartRuntime:
    """Owns the poll loop for one device and exposes its decoded state to entities."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self._hass = hass
        self._entry = entry
        self._ieee: str = format_ieee(entry.data[CONF_IEEE])
        self._device_name: str = entry.data.get(CONF_DEVICE_NAME) or self._ieee
        self._endpoint_id: int = entry.data.get(CONF_ENDPOINT_ID, UART_ENDPOINT_ID)

        self._scheduler = PollScheduler(self._async_poll_request)
        self._client: PtvoUartClient | None = None
        self._zigpy_device: Any = None
        self._application: Any = None
        self._join_listener: DeviceJoinListener | None = None

        self._state: Dict[str, Any] = {}
        self._desired_interval: Optional[Union[int, float]] = None
        self._last_update: Optional[datetime] = None

        self.update_signal = f"{DOMAIN}_{entry.entry_id}_update"

    @property
    def ieee(self) -> str:
        return self._ieee

    @property
    def device_name(self) -> str:
        return self._device_name

    @property
    def available(self) -> bool:
        return self._client is not None

    @property
    def last_update(self) -> Optional[datetime]:
        return self._last_update

    @property
    def poll_state(self) -> PollState:
        return self._scheduler.state(self._ieee)

    @property
    def poll_interval(self) -> Union[int, float]:
        config = self._scheduler.registry.get(self._ieee)
        if config is not None:
            return config.interval_seconds
        if self._desired_interval is not None:
            return self._desired_interval
        return DEFAULT_POLL_INTERVAL

    def get_value(self, key: str) -> Any:
        """Return the latest decoded value for a state key."""
        return self._state.get(key)

    async def async_start(self) -> None:
        """Bind to the ZHA device and start the poll loop."""
        try:
            application = get_zigpy_application(self._hass)
        except (KeyError, ValueError) as exc:
            raise ConfigEntryNotReady("ZHA is not ready yet") from exc

        zigpy_device = find_device(application, self._ieee)
        if zigpy_device is None:
            raise ConfigEntryNotReady(f"Zigbee device {self._ieee} is not known to ZHA")

        try:
            self._bind(zigpy_device)
        except MissingCapabilityError as exc:
            raise ConfigEntryError(str(exc)) from exc

        self._application = application
        self._join_listener = DeviceJoinListener(self._ieee, self._handle_announce)
        application.add_listener(self._join_listener)
        LOGGER.info("Started PTVO UART runtime for %s", self._ieee)
        await self._scheduler.async_handle_event(EVENT_START, self._ieee)

    async def async_stop(self) -> None:
        """Stop the poll loop and detach from the zigpy stack."""
        await self._scheduler.async_handle_event(EVENT_STOP, self._ieee)
        if self._application is not None and self._join_listener is not None:
            self._application.remove_listener(self._join_listener)
        self._application = None
        self._join_listener = None
        self._unbind()
        LOGGER.info("Stopped PTVO UART runtime for %s", self._ieee)

    async def async_request_value(self, channel: str) -> None:
        """Explicit refresh; transport errors reach the caller."""
        await self._require_client().request_value(channel)

    def set_poll_interval(self, value: Any) -> Dict[str, Union[int, float]]:
        """Validate and apply a poll interval; raises ValidationError."""
        state = self._scheduler.set_interval(self._ieee, value)
        self._desired_interval = state[CHANNEL_POLL_INTERVAL]
        self._state.update(state)
        async_dispatcher_send(self._hass, self.update_signal)
        return state

    def _bind(self, zigpy_device: Any) -> None:
        client = PtvoUartClient(ZigpyUartDevice(zigpy_device), endpoint_id=self._endpoint_id)
        client.subscribe_reports(self._handle_payload)
        self._unbind()
        self._client = client
        self._zigpy_device = zigpy_device

    def _unbind(self) -> None:
        if self._client is not None:
            self._client.unsubscribe_reports()
        self._client = None
        self._zigpy_device = None

    def _require_client(self) -> PtvoUartClient:
        client = self._client
        if client is None:
            raise TransportError(f"Device {self._ieee} is not bound")
        return client

    async def _async_poll_request(self, _device_id: Any, channel: str) -> None:
        await self._require_client().request_value(channel)

    @callback
    def _handle_announce(self, zigpy_device: Any) -> None:
        if zigpy_device is not self._zigpy_device:
            try:
                self._bind(zigpy_device)
            except MissingCapabilityError as exc:
                LOGGER.warning("Re-joined device %s has no UART endpoint: %s", self._ieee, exc)
                return
        self._hass.async_create_task(
            self._scheduler.async_handle_event(EVENT_DEVICE_ANNOUNCE, self._ieee)
        )

    @callback
    def _handle_payload(self, payload: bytes) -> None:
        config = self._scheduler.registry.get(self._ieee)
        frame = decode_report(payload, self._desired_interval, config)
        LOGGER.debug("UART report from %s: %s", self._ieee, format_frame(frame))
        self._state.update(frame.to_state())
        self._last_update = dt_util.utcnow()
        async_dispatcher_send(self._hass, self.update_signal)
