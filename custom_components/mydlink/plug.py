"""Session controller for a single mydlink smart plug.

The controller looks up the device through the REST API, opens a Signal
Agent session for it, and owns the retry policy the client lacks: transient
failures schedule a reconnect after a fixed delay, configuration problems
are reported and left for the operator to fix.

State changes are republished to registered update callbacks as
(channel, value) pairs, see CHANNEL_* in const.py.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx
from homeassistant.core import CALLBACK_TYPE, callback
from homeassistant.helpers.event import async_call_later

from . import api
from .const import (
    CHANNEL_ONLINE,
    CHANNEL_POWER,
    CHANNEL_STATUS,
    CHANNEL_SWITCH,
    RECONNECT_DELAY,
)
from .exceptions import MydlinkConfigurationError
from .models import DeviceSession, PlugStatus, StatusDetail
from .signal_agent import SignalAgentClient

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    import aiohttp
    from homeassistant.core import HomeAssistant

    from .coordinator import MydlinkAccountCoordinator
    from .models import MydlinkDevice, MydlinkDeviceInfo

_LOGGER = logging.getLogger(__name__)


class MydlinkPlugController:
    """Connection lifecycle of one plug: lookup, connect, sign in, recover."""

    def __init__(
        self,
        hass: HomeAssistant,
        account: MydlinkAccountCoordinator,
        ws_session: aiohttp.ClientSession,
        device: MydlinkDevice,
        *,
        reconnect_delay: float = RECONNECT_DELAY,
    ) -> None:
        """Initialize the controller.

        Args:
            hass: Home Assistant instance, used for scheduling.
            account: Account coordinator providing REST lookups and credentials.
            ws_session: aiohttp session for the relay connection.
            device: Device list entry describing the plug.
            reconnect_delay: Seconds to wait before reconnecting after a failure.

        """
        self._hass = hass
        self._account = account
        self._ws_session = ws_session
        self._reconnect_delay = reconnect_delay

        self.device_id = device.id
        self.name = device.name
        self.model = device.model
        self._mac = device.mac

        self._device_info: MydlinkDeviceInfo | None = None
        self._session: DeviceSession | None = None
        self._client: SignalAgentClient | None = None
        self._cancel_reconnect: CALLBACK_TYPE | None = None
        self._connect_lock = asyncio.Lock()
        self._disposed = False
        self._update_callbacks: list[Callable[[str, Any], None]] = []

        self.status = PlugStatus.UNKNOWN
        self.status_detail = StatusDetail.NONE
        self.status_message: str | None = None
        self.switch_state = False
        self.power: float | None = None
        self.online: bool | None = None
        self.properties: dict[str, str] = {}

    @property
    def connected(self) -> bool:
        """Return True if a signed-in relay session is live."""
        return self._client is not None and self._client.connected

    @property
    def available(self) -> bool:
        """Return True if the plug can be controlled."""
        return self.status is PlugStatus.ONLINE

    @property
    def reconnect_scheduled(self) -> bool:
        """Return True if a reconnect attempt is pending."""
        return self._cancel_reconnect is not None

    def register_update_callback(
        self,
        update_callback: Callable[[str, Any], None],
    ) -> Callable[[], None]:
        """Register a callback for channel and status updates.

        Args:
            update_callback: Function called with (channel, value) on every update.

        Returns:
            A function to unregister the callback.

        """
        self._update_callbacks.append(update_callback)

        def unregister() -> None:
            if update_callback in self._update_callbacks:
                self._update_callbacks.remove(update_callback)

        return unregister

    async def async_connect(self) -> bool:
        """Look up the device and open a signed-in relay session.

        Returns:
            True if the plug is online afterwards, False otherwise.

        """
        if self._disposed:
            return False
        if self._connect_lock.locked():
            _LOGGER.debug("Connection attempt for %s already running", self.device_id)
            return False

        async with self._connect_lock:
            self._cancel_scheduled_reconnect()
            if self.connected:
                return True
            return await self._async_connect()

    async def _async_connect(self) -> bool:
        try:
            mac = await self._async_resolve_mac()
            info = await self._account.async_get_device_info(self.device_id, mac)
        except MydlinkConfigurationError as err:
            self._set_status(PlugStatus.OFFLINE, StatusDetail.CONFIGURATION_ERROR, str(err))
            return False
        except api.MydlinkApiAuthError as err:
            self._set_status(
                PlugStatus.OFFLINE,
                StatusDetail.CONFIGURATION_ERROR,
                f"Access token rejected: {err}",
            )
            return False
        except (api.MydlinkApiClientError, httpx.HTTPError) as err:
            _LOGGER.warning("Could not get device info for %s: %s", self.device_id, err)
            info = None

        if info is None:
            self._fail_and_retry("Could not get device info")
            return False

        self._apply_device_info(info)

        if not info.online:
            self._fail_and_retry("Device is offline")
            return False

        try:
            session = self._build_session(info)
        except MydlinkConfigurationError as err:
            self._set_status(PlugStatus.OFFLINE, StatusDetail.CONFIGURATION_ERROR, str(err))
            return False

        await self._async_release_client()
        client = SignalAgentClient(
            self._ws_session,
            session.access_token,
            session.owner_email,
            listener=self,
        )
        if not await client.async_connect(session.relay_url):
            await client.async_disconnect()
            self._fail_and_retry("Failed to connect via Signal Agent")
            return False

        if self._disposed:
            await client.async_disconnect()
            return False

        self._client = client
        self._session = session
        self._set_status(PlugStatus.ONLINE)
        _LOGGER.info("Plug %s connected via Signal Agent", self.device_id)

        if info.switch_state is not None:
            self._set_switch_state(info.switch_state)
        self._set_online(True)
        return True

    async def async_switch_plug(self, on: bool) -> bool:
        """Switch the plug on or off.

        Without a live session, a fresh connection is attempted first.

        Returns:
            True if the relay confirmed the change, False otherwise.

        """
        if not self.connected or self._session is None:
            _LOGGER.warning("Cannot switch plug %s - not connected", self.device_id)
            if not await self.async_connect():
                return False

        client = self._client
        session = self._session
        if client is None or session is None:
            return False

        if not await client.async_switch_plug(session.device_token, on):
            _LOGGER.error("Failed to switch plug %s", self.device_id)
            return False

        _LOGGER.debug("Switched plug %s %s", self.device_id, "ON" if on else "OFF")
        self._set_switch_state(on)
        return True

    async def async_refresh_state(self) -> None:
        """Reconcile with the device info reported by the REST API.

        Online/offline transitions of the device are only visible through
        polling; the relay session does not report them.
        """
        if self._disposed:
            return

        mac = self._mac or (self._device_info.mac if self._device_info else None)
        if mac is None:
            return

        try:
            info = await self._account.async_get_device_info(self.device_id, mac)
        except (api.MydlinkApiClientError, httpx.HTTPError) as err:
            _LOGGER.debug("Refreshing %s failed: %s", self.device_id, err)
            return
        if info is None:
            return

        self._apply_device_info(info)
        self._set_online(info.online)
        if info.switch_state is not None:
            self._set_switch_state(info.switch_state)

        if info.online and self.status is not PlugStatus.ONLINE:
            if self.status_detail is StatusDetail.CONFIGURATION_ERROR:
                return
            await self.async_connect()
        elif not info.online and self.status is PlugStatus.ONLINE:
            self._set_status(
                PlugStatus.OFFLINE,
                StatusDetail.COMMUNICATION_ERROR,
                "Device went offline",
            )
            # The next online poll must open a fresh session.
            await self._async_release_client()

    async def async_account_unavailable(self) -> None:
        """Take the plug offline because the account cannot be reached."""
        if self.status_detail is StatusDetail.BRIDGE_OFFLINE:
            return
        self._cancel_scheduled_reconnect()
        self._set_status(PlugStatus.OFFLINE, StatusDetail.BRIDGE_OFFLINE, "Account unavailable")
        await self._async_release_client()

    async def async_dispose(self) -> None:
        """Release the relay session and any pending reconnect."""
        self._disposed = True
        self._cancel_scheduled_reconnect()
        await self._async_release_client()
        self._update_callbacks.clear()

    # SignalAgentListener

    def on_switch_state_changed(self, device_id: str, state: bool) -> None:
        """Handle a switch event from the relay."""
        if self._is_own_device(device_id):
            self._set_switch_state(state)

    def on_power_changed(self, device_id: str, power: float) -> None:
        """Handle a power event from the relay."""
        if self._is_own_device(device_id):
            self.power = power
            self._publish(CHANNEL_POWER, power)

    def on_connection_state_changed(self, connected: bool) -> None:
        """Handle the relay session being established or lost."""
        if connected:
            _LOGGER.debug("Relay session for %s established", self.device_id)
            return
        if self._disposed:
            return

        _LOGGER.warning("Lost connection to device %s", self.device_id)
        self._set_status(
            PlugStatus.OFFLINE,
            StatusDetail.COMMUNICATION_ERROR,
            "Lost WebSocket connection",
        )
        client, self._client = self._client, None
        if client is not None:
            self._hass.async_create_task(client.async_disconnect())
        self._schedule_reconnect()

    # Internals

    async def _async_resolve_mac(self) -> str:
        if self._mac:
            return self._mac

        for device in await self._account.async_get_devices():
            if device.id == self.device_id and device.mac:
                self._mac = device.mac
                return device.mac

        error_msg = "Could not find MAC address for device"
        raise MydlinkConfigurationError(error_msg)

    def _build_session(self, info: MydlinkDeviceInfo) -> DeviceSession:
        email = self._account.user_email
        if not info.relay_url or not info.device_token or not email:
            error_msg = "Missing relay URL, device token, or user email"
            raise MydlinkConfigurationError(error_msg)

        access_token = self._account.access_token
        if not access_token:
            error_msg = "No access token available"
            raise MydlinkConfigurationError(error_msg)

        return DeviceSession(
            device_id=self.device_id,
            mac_address=info.mac or self._mac or "",
            relay_url=info.relay_url,
            device_token=info.device_token,
            access_token=access_token,
            owner_email=email,
        )

    def _apply_device_info(self, info: MydlinkDeviceInfo) -> None:
        self._device_info = info
        if info.name:
            self.name = info.name
        if info.model:
            self.model = info.model
        properties = {
            "device_name": info.name,
            "device_model": info.model,
            "firmware_version": info.firmware_version,
            "pin_code": info.pin_code,
            "mac_address": info.mac,
        }
        self.properties = {key: value for key, value in properties.items() if value}

    def _is_own_device(self, device_id: str) -> bool:
        if not device_id:
            return False
        if device_id == self.device_id:
            return True
        info = self._device_info
        return info is not None and device_id == info.device_token

    async def _async_release_client(self) -> None:
        client, self._client = self._client, None
        self._session = None
        if client is not None:
            await client.async_disconnect()

    def _fail_and_retry(self, message: str) -> None:
        self._set_status(PlugStatus.OFFLINE, StatusDetail.COMMUNICATION_ERROR, message)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        self._cancel_scheduled_reconnect()
        if self._disposed:
            return
        self._cancel_reconnect = async_call_later(
            self._hass, self._reconnect_delay, self._handle_reconnect
        )
        _LOGGER.debug(
            "Scheduled reconnect of %s in %s seconds",
            self.device_id,
            self._reconnect_delay,
        )

    def _cancel_scheduled_reconnect(self) -> None:
        cancel, self._cancel_reconnect = self._cancel_reconnect, None
        if cancel is not None:
            cancel()

    @callback
    def _handle_reconnect(self, _now: datetime) -> None:
        self._cancel_reconnect = None
        self._hass.async_create_task(self.async_connect())

    def _set_status(
        self,
        status: PlugStatus,
        detail: StatusDetail = StatusDetail.NONE,
        message: str | None = None,
    ) -> None:
        if status is PlugStatus.OFFLINE:
            _LOGGER.warning(
                "Plug %s offline (%s): %s", self.device_id, detail, message
            )
        self.status = status
        self.status_detail = detail
        self.status_message = message
        self._publish(CHANNEL_STATUS, status)

    def _set_switch_state(self, state: bool) -> None:
        self.switch_state = state
        self._publish(CHANNEL_SWITCH, state)

    def _set_online(self, online: bool) -> None:
        self.online = online
        self._publish(CHANNEL_ONLINE, online)

    def _publish(self, channel: str, value: Any) -> None:  # noqa: ANN401
        for update_callback in list(self._update_callbacks):
            try:
                update_callback(channel, value)
            except Exception:
                _LOGGER.exception("Error in plug update callback")
