"""
Configuration flow for the mydlink integration.

The flow takes the account email together with an access token issued by
the mydlink cloud, and validates both against the REST API before the
entry is created.
"""

import logging
from typing import Any

import httpx
import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.const import CONF_ACCESS_TOKEN, CONF_EMAIL, CONF_SCAN_INTERVAL
from homeassistant.helpers.httpx_client import get_async_client

from . import api
from .const import (
    CONF_API_SITE,
    DEFAULT_POLL_INTERVAL,
    DOMAIN,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
)

_LOGGER = logging.getLogger(__name__)

MIN_SCAN_INTERVAL = 10


class MydlinkConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for the mydlink integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: User input data containing email, access token and
                optionally the API site and scan interval.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            email = user_input[CONF_EMAIL]
            access_token = user_input[CONF_ACCESS_TOKEN]
            api_site = user_input.get(CONF_API_SITE) or None

            try:
                session = get_async_client(self.hass)
                await api.async_get_user_info(session, access_token, api_site)
                devices = await api.async_get_devices(session, access_token, api_site)
                _LOGGER.info(
                    "Validated mydlink access token, %d devices found", len(devices)
                )

            except api.MydlinkApiAuthError as err:
                _LOGGER.warning(
                    "Authentication failed (%s): %s", ERROR_INVALID_AUTH, err
                )
                errors["base"] = ERROR_INVALID_AUTH
            except httpx.ConnectError:
                _LOGGER.exception("Connection error (%s)", ERROR_CANNOT_CONNECT)
                errors["base"] = ERROR_CANNOT_CONNECT
            except httpx.TimeoutException:
                _LOGGER.exception("Timeout error (%s)", ERROR_TIMEOUT)
                errors["base"] = ERROR_TIMEOUT
            except api.MydlinkApiClientError:
                _LOGGER.exception("API client error (%s)", ERROR_API_ERROR)
                errors["base"] = ERROR_API_ERROR
            except Exception:
                _LOGGER.exception(
                    "Unexpected error during validation (%s)",
                    ERROR_UNKNOWN,
                )
                errors["base"] = ERROR_UNKNOWN

            else:
                await self.async_set_unique_id(email.lower())
                self._abort_if_unique_id_configured()

                data = {
                    CONF_EMAIL: email,
                    CONF_ACCESS_TOKEN: access_token,
                    CONF_SCAN_INTERVAL: user_input.get(
                        CONF_SCAN_INTERVAL, DEFAULT_POLL_INTERVAL
                    ),
                }
                if api_site:
                    data[CONF_API_SITE] = api_site

                return self.async_create_entry(
                    title=f"mydlink ({email})",
                    data=data,
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_EMAIL): str,
                    vol.Required(CONF_ACCESS_TOKEN): str,
                    vol.Optional(CONF_API_SITE): str,
                    vol.Optional(
                        CONF_SCAN_INTERVAL, default=DEFAULT_POLL_INTERVAL
                    ): vol.All(vol.Coerce(int), vol.Range(min=MIN_SCAN_INTERVAL)),
                }
            ),
            errors=errors,
        )
