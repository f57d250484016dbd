"""Connectivity sensor for mydlink smart plugs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.const import EntityCategory

from .const import CHANNEL_ONLINE, DOMAIN
from .entity import MydlinkPlugEntity

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .plug import MydlinkPlugController


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up connectivity sensors for mydlink plugs."""
    controllers = hass.data[DOMAIN][entry.entry_id]["controllers"]
    async_add_entities(
        [MydlinkOnlineSensor(controller) for controller in controllers.values()]
    )


class MydlinkOnlineSensor(MydlinkPlugEntity, BinarySensorEntity):
    """Whether the cloud reports the plug as online."""

    _attr_device_class = BinarySensorDeviceClass.CONNECTIVITY
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_name = "Online"
    _update_channels = (CHANNEL_ONLINE,)

    def __init__(self, controller: MydlinkPlugController) -> None:
        """Initialize the sensor."""
        super().__init__(controller, CHANNEL_ONLINE)

    @property
    def available(self) -> bool:
        """Stay available so an offline plug shows as disconnected."""
        return True

    @property
    def is_on(self) -> bool | None:
        """Return True if the plug is online."""
        return self._controller.online
