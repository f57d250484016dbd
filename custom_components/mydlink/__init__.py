from __future__ import annotations

import logging

import httpx
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_ACCESS_TOKEN, CONF_EMAIL, Platform
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from . import api
from .api import create_session_client
from .const import DOMAIN
from .coordinator import MydlinkAccountCoordinator
from .plug import MydlinkPlugController

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.SWITCH, Platform.SENSOR, Platform.BINARY_SENSOR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up mydlink integration for entry %s", entry.entry_id)

    if CONF_EMAIL not in entry.data or CONF_ACCESS_TOKEN not in entry.data:
        _LOGGER.error(
            "Missing email or access token in configuration for entry %s",
            entry.entry_id,
        )
        return False

    session = create_session_client(hass)
    coordinator = MydlinkAccountCoordinator(hass, session, entry)

    try:
        _LOGGER.debug("Fetching devices from mydlink API")
        devices = await coordinator.async_get_devices()
        _LOGGER.info("Successfully retrieved %d devices from mydlink API", len(devices))
    except api.MydlinkApiAuthError as err:
        _LOGGER.warning(
            "Authentication failed for entry %s: %s", entry.entry_id, str(err)
        )
        await session.aclose()
        return False
    except api.MydlinkApiClientError as err:
        await session.aclose()
        raise ConfigEntryNotReady(f"API client error: {err}") from err
    except httpx.HTTPError as err:
        await session.aclose()
        raise ConfigEntryNotReady(f"Cannot reach mydlink API: {err}") from err

    coordinator.async_set_updated_data(devices)

    ws_session = async_get_clientsession(hass)
    controllers = {
        device.id: MydlinkPlugController(hass, coordinator, ws_session, device)
        for device in devices
    }

    @callback
    def _handle_account_update() -> None:
        for controller in controllers.values():
            if coordinator.last_update_success:
                entry.async_create_background_task(
                    hass,
                    controller.async_refresh_state(),
                    f"{DOMAIN} refresh {controller.device_id}",
                )
            else:
                entry.async_create_background_task(
                    hass,
                    controller.async_account_unavailable(),
                    f"{DOMAIN} unavailable {controller.device_id}",
                )

    entry.async_on_unload(coordinator.async_add_listener(_handle_account_update))

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "session": session,
        "coordinator": coordinator,
        "controllers": controllers,
    }
    _LOGGER.debug(
        "Stored data for entry %s: %d controllers", entry.entry_id, len(controllers)
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    for controller in controllers.values():
        entry.async_create_background_task(
            hass,
            controller.async_connect(),
            f"{DOMAIN} connect {controller.device_id}",
        )

    _LOGGER.info("Successfully setup mydlink integration for entry %s", entry.entry_id)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading mydlink integration for entry %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        _LOGGER.warning("Failed to unload some platforms for entry %s", entry.entry_id)
        return False

    data = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if data is not None:
        for controller in data["controllers"].values():
            await controller.async_dispose()
        await data["session"].aclose()
        _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)

    _LOGGER.info("Successfully unloaded mydlink integration for entry %s", entry.entry_id)
    return True
