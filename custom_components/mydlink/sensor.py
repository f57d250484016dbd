"""Power sensor for mydlink smart plugs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.const import UnitOfPower

from .const import CHANNEL_POWER, DOMAIN
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
    """Set up power sensors for mydlink plugs."""
    controllers = hass.data[DOMAIN][entry.entry_id]["controllers"]
    async_add_entities(
        [MydlinkPowerSensor(controller) for controller in controllers.values()]
    )


class MydlinkPowerSensor(MydlinkPlugEntity, SensorEntity):
    """Power drawn through a plug, as pushed by the relay."""

    _attr_device_class = SensorDeviceClass.POWER
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfPower.WATT
    _attr_name = "Power"
    _update_channels = (CHANNEL_POWER,)

    def __init__(self, controller: MydlinkPlugController) -> None:
        """Initialize the sensor."""
        super().__init__(controller, CHANNEL_POWER)

    @property
    def native_value(self) -> float | None:
        """Return the last reported power in watts."""
        return self._controller.power
