"""Coordinator for the mydlink integration."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

import httpx
from homeassistant.const import CONF_ACCESS_TOKEN, CONF_EMAIL, CONF_SCAN_INTERVAL
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import api
from .const import CONF_API_SITE, DEFAULT_POLL_INTERVAL, DOMAIN
from .models import MydlinkDevice, MydlinkDeviceInfo

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


class MydlinkAccountCoordinator(DataUpdateCoordinator[list[MydlinkDevice]]):
    """Coordinator that polls the device list of a mydlink account.

    Plug controllers use it as their REST collaborator: it owns the account
    credentials and performs device list and device info lookups.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        session: httpx.AsyncClient,
        config_entry: ConfigEntry,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(
                seconds=config_entry.data.get(CONF_SCAN_INTERVAL, DEFAULT_POLL_INTERVAL)
            ),
        )
        self.session = session
        self.config_entry = config_entry
        self.data = []

    @property
    def user_email(self) -> str | None:
        """Return the account email, used as owner id on the relay."""
        return self.config_entry.data.get(CONF_EMAIL)

    @property
    def access_token(self) -> str | None:
        """Return the account access token."""
        return self.config_entry.data.get(CONF_ACCESS_TOKEN)

    @property
    def api_site(self) -> str | None:
        """Return the regional API site of the account, if known."""
        return self.config_entry.data.get(CONF_API_SITE)

    async def _async_update_data(self) -> list[MydlinkDevice]:
        try:
            devices = await self.async_get_devices()
        except api.MydlinkApiAuthError as err:
            raise UpdateFailed(f"Authentication error while polling devices: {err}") from err
        except api.MydlinkApiClientError as err:
            raise UpdateFailed(f"API error while polling devices: {err}") from err
        except httpx.HTTPError as err:
            raise UpdateFailed(f"Connection error while polling devices: {err}") from err

        _LOGGER.debug("Polled %d devices", len(devices))
        return devices

    async def async_get_devices(self) -> list[MydlinkDevice]:
        """Fetch the device list of the account.

        Raises:
            MydlinkApiAuthError: If the access token is rejected.
            MydlinkApiClientError: If the API request fails.
            httpx.HTTPError: If the API cannot be reached.

        """
        token = self._require_token()
        return await api.async_get_devices(self.session, token, self.api_site)

    async def async_get_device_info(
        self, device_id: str, mac: str
    ) -> MydlinkDeviceInfo | None:
        """Fetch detailed information for one device.

        Raises:
            MydlinkApiAuthError: If the access token is rejected.
            MydlinkApiClientError: If the API request fails.
            httpx.HTTPError: If the API cannot be reached.

        """
        token = self._require_token()
        return await api.async_get_device_info(
            self.session, token, device_id, mac, self.api_site
        )

    def _require_token(self) -> str:
        token = self.access_token
        if not token:
            error_msg = "No access token available"
            raise api.MydlinkApiAuthError(error_msg)
        return token
