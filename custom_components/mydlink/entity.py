"""Base entity for mydlink plugs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.core import callback
from homeassistant.helpers.device_registry import CONNECTION_NETWORK_MAC, DeviceInfo
from homeassistant.helpers.entity import Entity

from .const import CHANNEL_STATUS, DOMAIN

if TYPE_CHECKING:
    from collections.abc import Callable

    from .plug import MydlinkPlugController


class MydlinkPlugEntity(Entity):
    """Entity pushed by a plug controller.

    Subclasses list the controller channels they render in _update_channels;
    status changes always refresh the entity since they drive availability.
    """

    _attr_has_entity_name = True
    _attr_should_poll = False
    _update_channels: tuple[str, ...] = ()

    def __init__(self, controller: MydlinkPlugController, key: str) -> None:
        """Initialize the entity.

        Args:
            controller: Session controller of the plug.
            key: Suffix making the unique id distinct per entity of a plug.

        """
        self._controller = controller
        self._attr_unique_id = f"{controller.device_id}_{key}"
        self._unsub_updates: Callable[[], None] | None = None

    @property
    def device_info(self) -> DeviceInfo:
        """Return the device this entity belongs to."""
        controller = self._controller
        info = DeviceInfo(
            identifiers={(DOMAIN, controller.device_id)},
            manufacturer="D-Link",
            name=controller.name or f"mydlink Plug {controller.device_id}",
            model=controller.model,
            sw_version=controller.properties.get("firmware_version"),
        )
        if mac := controller.properties.get("mac_address"):
            info["connections"] = {(CONNECTION_NETWORK_MAC, mac)}
        return info

    @property
    def available(self) -> bool:
        """Return True if the plug is online."""
        return self._controller.available

    async def async_added_to_hass(self) -> None:
        """Subscribe to controller updates."""
        await super().async_added_to_hass()
        self._unsub_updates = self._controller.register_update_callback(
            self._handle_plug_update
        )

    async def async_will_remove_from_hass(self) -> None:
        """Unsubscribe from controller updates."""
        await super().async_will_remove_from_hass()
        if self._unsub_updates is not None:
            self._unsub_updates()
            self._unsub_updates = None

    @callback
    def _handle_plug_update(self, channel: str, _value: Any) -> None:  # noqa: ANN401
        if channel == CHANNEL_STATUS or channel in self._update_channels:
            self.async_write_ha_state()
