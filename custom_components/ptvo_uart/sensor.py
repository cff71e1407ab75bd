"""Sensor entities for the PTVO UART rangefinder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfLength, UnitOfTemperature
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .ptvo import (
    CHANNEL_DISTANCE,
    CHANNEL_TEMPERATURE,
    STATE_ACTION,
    PtvoUartError,
)

from .const import DOMAIN, MANUFACTURER, MODEL
from .runtime import PtvoUartRuntime

MAX_STATE_LENGTH = 255


@dataclass(frozen=True, kw_only=True)
class PtvoUartSensorDescription(SensorEntityDescription):
    """Describes a value decoded from the UART channel."""

    state_key: str
    request_channel: Optional[str] = None


SENSOR_DESCRIPTIONS: tuple[PtvoUartSensorDescription, ...] = (
    PtvoUartSensorDescription(
        key="distance",
        name="Ultrasound sensor distance",
        native_unit_of_measurement=UnitOfLength.MILLIMETERS,
        device_class=SensorDeviceClass.DISTANCE,
        state_class=SensorStateClass.MEASUREMENT,
        state_key=CHANNEL_DISTANCE,
        request_channel=CHANNEL_DISTANCE,
    ),
    PtvoUartSensorDescription(
        key="temperature",
        name="Ultrasound sensor temperature",
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        state_key=CHANNEL_TEMPERATURE,
        request_channel=CHANNEL_TEMPERATURE,
    ),
    PtvoUartSensorDescription(
        key="action",
        name="UART message",
        icon="mdi:message-text-outline",
        state_key=STATE_ACTION,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up the rangefinder sensor entities."""
    runtime: PtvoUartRuntime = hass.data[DOMAIN][entry.entry_id]
    entities = [PtvoUartSensor(runtime, description) for description in SENSOR_DESCRIPTIONS]
    async_add_entities(entities)


class PtvoUartSensor(SensorEntity):
    """A reading pushed by the sensor; a forced refresh requests a new one."""

    entity_description: PtvoUartSensorDescription

    def __init__(self, runtime: PtvoUartRuntime, description: PtvoUartSensorDescription) -> None:
        self._runtime = runtime
        self.entity_description = description
        self._attr_should_poll = False
        self._attr_unique_id = f"{runtime.ieee}_{description.key}"
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, runtime.ieee)},
            manufacturer=MANUFACTURER,
            model=MODEL,
            name=runtime.device_name,
        )

    async def async_added_to_hass(self) -> None:
        """Attach dispatcher listeners."""
        self.async_on_remove(
            async_dispatcher_connect(self.hass, self._runtime.update_signal, self._handle_update)
        )

    @callback
    def _handle_update(self) -> None:
        self.async_write_ha_state()

    async def async_update(self) -> None:
        channel = self.entity_description.request_channel
        if channel is None:
            return
        try:
            await self._runtime.async_request_value(channel)
        except PtvoUartError as exc:
            raise HomeAssistantError(f"Failed to request {channel}: {exc}") from exc

    @property
    def available(self) -> bool:
        return self._runtime.available

    @property
    def native_value(self) -> Any:
        value = self._runtime.get_value(self.entity_description.state_key)
        if isinstance(value, list):
            value = " ".join(f"{code:02X}" for code in value)
        if isinstance(value, str):
            return value[:MAX_STATE_LENGTH]
        return value
