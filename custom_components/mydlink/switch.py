"""Switch entities for mydlink smart plugs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity

from .const import CHANNEL_SWITCH, DOMAIN
from .entity import MydlinkPlugEntity

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .plug import MydlinkPlugController

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up switch entities for mydlink plugs."""
    controllers = hass.data[DOMAIN][entry.entry_id]["controllers"]
    async_add_entities(
        [MydlinkPlugSwitch(controller) for controller in controllers.values()]
    )


class MydlinkPlugSwitch(MydlinkPlugEntity, SwitchEntity):
    """The relay of a mydlink smart plug."""

    _attr_device_class = SwitchDeviceClass.OUTLET
    _attr_name = None
    _update_channels = (CHANNEL_SWITCH,)

    def __init__(self, controller: MydlinkPlugController) -> None:
        """Initialize the switch."""
        super().__init__(controller, CHANNEL_SWITCH)

    @property
    def is_on(self) -> bool:
        """Return the last known relay state."""
        return self._controller.switch_state

    async def async_turn_on(self, **kwargs: Any) -> None:  # noqa: ANN401
        """Switch the plug on."""
        await self._async_switch(on=True)

    async def async_turn_off(self, **kwargs: Any) -> None:  # noqa: ANN401
        """Switch the plug off."""
        await self._async_switch(on=False)

    async def _async_switch(self, *, on: bool) -> None:
        if not await self._controller.async_switch_plug(on):
            _LOGGER.warning(
                "Switching %s %s was not confirmed", self.entity_id, "on" if on else "off"
            )
        self.async_write_ha_state()
