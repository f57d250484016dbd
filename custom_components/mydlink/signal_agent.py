"""Client for the mydlink Signal Agent (SA) relay protocol.

Device control on current mydlink plugs goes through a WebSocket relay
rather than the REST API. The client opens one relay connection, signs in
with the account access token, and then multiplexes set_setting commands
with events pushed by the relay over that single connection.

States move Disconnected -> Connecting -> SignedIn, and to Degraded when the
connection is lost. The client never reconnects on its own.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any, Protocol

from . import protocol
from .const import (
    SA_CODE_SUCCESS,
    SA_COMMAND_SET_SETTING,
    SA_COMMAND_SIGN_IN,
    SA_EVENT_SETTING_CHANGE,
    SA_TYPE_PLUG,
    SA_TYPE_POWER,
    WEBSOCKET_TIMEOUT,
)
from .exceptions import (
    MydlinkCommunicationError,
    MydlinkProtocolError,
    MydlinkTimeoutError,
)
from .models import ConnectionState
from .pending import PendingRequestTable
from .transport import RelayTransport

if TYPE_CHECKING:
    from collections.abc import Callable

    import aiohttp

_LOGGER = logging.getLogger(__name__)


class SignalAgentListener(Protocol):
    """Receiver of device events and connection changes."""

    def on_switch_state_changed(self, device_id: str, state: bool) -> None:
        """Handle a plug being switched."""

    def on_power_changed(self, device_id: str, power: float) -> None:
        """Handle a new power reading in watts."""

    def on_connection_state_changed(self, connected: bool) -> None:
        """Handle the relay session being established or lost."""


class SignalAgentClient:
    """A signed-in session with a Signal Agent relay."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        access_token: str,
        user_email: str,
        *,
        listener: SignalAgentListener | None = None,
        timeout: float = WEBSOCKET_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            session: aiohttp session used for the relay connection.
            access_token: Account access token, sent as owner_token.
            user_email: Account email, sent as owner_id.
            listener: Receiver of events and connection changes.
            timeout: Seconds to wait for the sign-in and command responses.

        """
        self._session = session
        self._access_token = access_token
        self._user_email = user_email
        self._listener = listener
        self._sequence = itertools.count(1)
        self._pending = PendingRequestTable(timeout)
        self._transport: RelayTransport | None = None
        self._state = ConnectionState.DISCONNECTED

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._state

    @property
    def connected(self) -> bool:
        """Return True if connected and signed in."""
        return (
            self._state is ConnectionState.SIGNED_IN
            and self._transport is not None
            and self._transport.is_open
        )

    @property
    def pending_requests(self) -> int:
        """Return the number of requests awaiting a response."""
        return len(self._pending)

    async def async_connect(self, relay_url: str) -> bool:
        """Connect to the relay and sign in.

        Args:
            relay_url: Relay WebSocket URL, e.g.
                wss://mp-eu-dcdda.auto.mydlink.com:443/SwitchCamera

        Returns:
            True if the client is signed in, False otherwise.

        """
        if self.connected:
            _LOGGER.debug("Already signed in to relay")
            return True

        if self._transport is not None:
            await self._async_release_transport()

        self._state = ConnectionState.CONNECTING
        transport = RelayTransport(
            self._session,
            on_text=self._handle_text,
            on_close=self._handle_close,
            on_error=self._handle_error,
        )
        self._transport = transport

        if not await transport.async_open(relay_url):
            _LOGGER.error("Failed to connect to relay %s", relay_url)
            await self._async_abort_connect()
            return False

        _LOGGER.debug("Connected to relay %s, signing in", relay_url)
        if not await self._async_sign_in():
            await self._async_abort_connect()
            return False

        return True

    async def async_switch_plug(self, device_token: str, on: bool) -> bool:
        """Switch a plug on or off.

        Args:
            device_token: Device token of the plug.
            on: True to switch on, False to switch off.

        Returns:
            True if the relay confirmed the change, False otherwise.

        """
        if self._state is not ConnectionState.SIGNED_IN:
            _LOGGER.warning("Not signed in to relay, cannot switch plug")
            return False

        sequence_id = next(self._sequence)
        message = protocol.build_set_setting(
            sequence_id, device_token, SA_TYPE_PLUG, 1 if on else 0
        )
        response = await self._async_request(sequence_id, SA_COMMAND_SET_SETTING, message)
        if response is None:
            return False

        if response.code != SA_CODE_SUCCESS:
            _LOGGER.error(
                "Switch failed: code=%s, message=%s",
                response.code,
                response.message or "unknown",
            )
            return False

        _LOGGER.debug("Switch command successful: %s", "ON" if on else "OFF")
        return True

    async def async_disconnect(self) -> None:
        """Disconnect from the relay.

        Releases the transport and every pending request. A local disconnect
        is not reported to the listener.
        """
        self._state = ConnectionState.DISCONNECTED
        await self._async_release_transport()

    async def _async_sign_in(self) -> bool:
        sequence_id = next(self._sequence)
        message = protocol.build_sign_in(
            sequence_id, self._user_email, self._access_token
        )
        response = await self._async_request(sequence_id, SA_COMMAND_SIGN_IN, message)
        if response is None:
            _LOGGER.error("Sign-in to relay failed")
            return False

        if response.code != SA_CODE_SUCCESS:
            _LOGGER.error(
                "Sign-in failed: code=%s, message=%s",
                response.code,
                response.message or "unknown",
            )
            return False

        if self._state is not ConnectionState.CONNECTING:
            # Connection dropped while the reply was in flight.
            return False

        self._state = ConnectionState.SIGNED_IN
        _LOGGER.info("Successfully signed in to relay")
        self._notify_connection_state(True)
        return True

    async def _async_request(
        self, sequence_id: int, command: str, message: dict[str, Any]
    ) -> protocol.SignalAgentResponse | None:
        transport = self._transport
        if transport is None:
            return None

        future = self._pending.register(sequence_id, command)
        text = protocol.encode(message)
        _LOGGER.debug("Sending %s request %d", command, sequence_id)
        if not await transport.async_send(text):
            self._pending.discard(sequence_id)
            return None

        try:
            return await future
        except MydlinkTimeoutError:
            _LOGGER.error("%s request %d timed out", command, sequence_id)
        except MydlinkCommunicationError as err:
            _LOGGER.warning("%s request %d failed: %s", command, sequence_id, err)
        return None

    async def _async_abort_connect(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        await self._async_release_transport()

    async def _async_release_transport(self) -> None:
        self._pending.fail_all(MydlinkCommunicationError("Relay session closed"))
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.async_close()

    def _handle_text(self, text: str) -> None:
        _LOGGER.debug("Received: %s", text)
        try:
            frame = protocol.parse_frame(text)
        except MydlinkProtocolError as err:
            _LOGGER.warning("Dropping malformed frame: %s", err)
            return

        resolved = False
        if frame.response is not None:
            resolved = self._pending.resolve(frame.response.sequence_id, frame.response)

        if frame.event is not None:
            self._handle_event(frame.event, resolved=resolved)

    def _handle_event(self, event: protocol.SignalAgentEvent, *, resolved: bool) -> None:
        if event.event_type != SA_EVENT_SETTING_CHANGE:
            _LOGGER.debug("Ignoring event type %s", event.event_type)
            return

        # The relay often confirms set_setting with a setting change event
        # instead of a direct reply, so the event stands in for the reply.
        # Only set_setting slots qualify, never sign_in, and only when this
        # frame did not already answer a request by its sequence id.
        if not resolved and self._pending.resolve_any(
            protocol.SignalAgentResponse(
                sequence_id=0,
                code=SA_CODE_SUCCESS,
                message="confirmed by setting change event",
            ),
            command=SA_COMMAND_SET_SETTING,
        ):
            _LOGGER.debug("Pending set_setting confirmed by setting change event")

        metadata = event.metadata
        listener = self._listener
        if metadata is None or listener is None:
            return

        if metadata.setting_type == SA_TYPE_PLUG:
            state = metadata.value == 1
            _LOGGER.debug("Switch state changed for %s: %s", event.device_id, state)
            self._call_listener(listener.on_switch_state_changed, event.device_id, state)
        elif metadata.setting_type == SA_TYPE_POWER:
            _LOGGER.debug("Power changed for %s: %s W", event.device_id, metadata.value)
            self._call_listener(listener.on_power_changed, event.device_id, metadata.value)

    def _handle_close(self, code: int | None, reason: str | None) -> None:
        _LOGGER.debug("Relay connection closed: %s - %s", code, reason)
        self._handle_connection_lost()

    def _handle_error(self, cause: BaseException | None) -> None:
        _LOGGER.error("Relay connection error: %s", cause or "unknown")
        self._handle_connection_lost()

    def _handle_connection_lost(self) -> None:
        if self._state not in (ConnectionState.CONNECTING, ConnectionState.SIGNED_IN):
            return

        self._state = ConnectionState.DEGRADED
        self._pending.fail_all(MydlinkCommunicationError("Relay connection lost"))
        self._notify_connection_state(False)

    def _notify_connection_state(self, connected: bool) -> None:
        listener = self._listener
        if listener is not None:
            self._call_listener(listener.on_connection_state_changed, connected)

    @staticmethod
    def _call_listener(method: Callable[..., None], *args: Any) -> None:  # noqa: ANN401
        try:
            method(*args)
        except Exception:
            _LOGGER.exception("Error in Signal Agent listener")
