"""Poll interval control for the PTVO UART rangefinder."""

from __future__ import annotations

from homeassistant.components.number import NumberEntity, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfTime
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .ptvo import MIN_POLL_INTERVAL, ValidationError

from .const import DOMAIN, MANUFACTURER, MAX_POLL_INTERVAL, MODEL
from .runtime import PtvoUartRuntime


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    runtime: PtvoUartRuntime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([PtvoUartPollIntervalNumber(runtime)])


class PtvoUartPollIntervalNumber(NumberEntity):
    """Seconds between distance polls (kept in memory only)."""

    _attr_name = "Poll interval"
    _attr_icon = "mdi:timer-cog-outline"
    _attr_entity_category = EntityCategory.CONFIG
    _attr_mode = NumberMode.BOX
    _attr_native_min_value = MIN_POLL_INTERVAL
    _attr_native_max_value = MAX_POLL_INTERVAL
    _attr_native_step = 1
    _attr_native_unit_of_measurement = UnitOfTime.SECONDS

    def __init__(self, runtime: PtvoUartRuntime) -> None:
        self._runtime = runtime
        self._attr_should_poll = False
        self._attr_unique_id = f"{runtime.ieee}_poll_interval"
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, runtime.ieee)},
            manufacturer=MANUFACTURER,
            model=MODEL,
            name=runtime.device_name,
        )

    async def async_added_to_hass(self) -> None:
        self.async_on_remove(
            async_dispatcher_connect(self.hass, self._runtime.update_signal, self._handle_update)
        )

    @callback
    def _handle_update(self) -> None:
        self.async_write_ha_state()

    @property
    def native_value(self) -> float:
        return self._runtime.poll_interval

    async def async_set_native_value(self, value: float) -> None:
        try:
            self._runtime.set_poll_interval(value)
        except ValidationError as exc:
            raise HomeAssistantError(str(exc)) from exc
