"""Constants for the PTVO UART rangefinder Home Assistant integration."""

from __future__ import annotations

from homeassistant.const import Platform

DOMAIN = "ptvo_uart"
PLATFORMS: list[Platform] = [Platform.SENSOR, Platform.NUMBER]

CONF_IEEE = "ieee"
CONF_DEVICE_NAME = "device_name"
CONF_ENDPOINT_ID = "endpoint_id"

MANUFACTURER = "Custom devices (DiY)"
MODEL = "2ch.1curren.UART"

MAX_POLL_INTERVAL = 3600  # upper bound offered by the number entity
