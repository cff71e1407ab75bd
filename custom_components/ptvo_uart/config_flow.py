"""Config flow for the PTVO UART rangefinder integration."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import voluptuous as vol
from homeassistant import config_entries

from .ptvo import UART_ENDPOINT_ID
from .ptvo.zigbee import format_ieee

from .const import CONF_DEVICE_NAME, CONF_ENDPOINT_ID, CONF_IEEE, DOMAIN

LOGGER = logging.getLogger(__name__)
IEEE_PATTERN = re.compile(r"^([0-9a-f]{2}:){7}[0-9a-f]{2}$")

USER_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_IEEE): str,
        vol.Optional(CONF_DEVICE_NAME): str,
        vol.Optional(CONF_ENDPOINT_ID, default=UART_ENDPOINT_ID): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=240)
        ),
    }
)


class PtvoUartConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle the configuration flow."""

    VERSION = 1

    async def async_step_user(self, user_input: Optional[dict[str, Any]] = None):
        """Ask for the IEEE address of a device already paired through ZHA."""
        errors: dict[str, str] = {}
        if user_input is not None:
            ieee = format_ieee(user_input[CONF_IEEE].strip())
            if not IEEE_PATTERN.match(ieee):
                errors[CONF_IEEE] = "invalid_ieee"
            else:
                await self.async_set_unique_id(ieee)
                self._abort_if_unique_id_configured()
                data = {**user_input, CONF_IEEE: ieee}
                LOGGER.debug("Creating PTVO UART entry for %s", ieee)
                return self.async_create_entry(
                    title=user_input.get(CONF_DEVICE_NAME) or ieee, data=data
                )

        return self.async_show_form(step_id="user", data_schema=USER_SCHEMA, errors=errors)
