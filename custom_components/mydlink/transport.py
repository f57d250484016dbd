"""WebSocket transport to a Signal Agent relay.

A RelayTransport owns exactly one physical WebSocket connection. It sends and
receives opaque text frames and reports open, close and error through
callbacks. It never retries; reconnection belongs to the session controller.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import aiohttp

from .const import (
    SA_ORIGIN,
    SA_SUBPROTOCOL,
    WEBSOCKET_CONNECT_TIMEOUT,
    WEBSOCKET_HEARTBEAT,
)

if TYPE_CHECKING:
    from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)


class RelayTransport:
    """A single WebSocket connection to a relay."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        on_text: Callable[[str], None],
        on_close: Callable[[int | None, str | None], None] | None = None,
        on_error: Callable[[BaseException | None], None] | None = None,
        on_open: Callable[[], None] | None = None,
        connect_timeout: float = WEBSOCKET_CONNECT_TIMEOUT,
    ) -> None:
        """Initialize the transport.

        Args:
            session: aiohttp session used for the upgrade request.
            on_text: Called with every inbound text frame, in arrival order.
            on_close: Called once when the relay closes the connection.
            on_error: Called when the connection fails.
            on_open: Called once the upgrade completed.
            connect_timeout: Upper bound for the upgrade, in seconds.

        """
        self._session = session
        self._on_text = on_text
        self._on_close = on_close
        self._on_error = on_error
        self._on_open = on_open
        self._connect_timeout = connect_timeout
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._closed_locally = False

    @property
    def is_open(self) -> bool:
        """Return True if the socket is open."""
        return self._ws is not None and not self._ws.closed

    async def async_open(self, url: str) -> bool:
        """Open the connection to the relay.

        Returns:
            True if the upgrade succeeded, False otherwise.

        """
        if self.is_open:
            _LOGGER.debug("Relay transport already open")
            return True

        self._closed_locally = False
        try:
            async with asyncio.timeout(self._connect_timeout):
                ws = await self._session.ws_connect(
                    url,
                    protocols=(SA_SUBPROTOCOL,),
                    origin=SA_ORIGIN,
                    heartbeat=WEBSOCKET_HEARTBEAT,
                )
        except TimeoutError:
            _LOGGER.warning("Timed out connecting to relay %s", url)
            return False
        except aiohttp.ClientError as err:
            _LOGGER.warning("Failed to connect to relay %s: %s", url, err)
            return False
        except OSError as err:
            _LOGGER.warning("Network error connecting to relay %s: %s", url, err)
            return False

        self._ws = ws
        _LOGGER.debug("Connected to relay %s (protocol=%s)", url, ws.protocol)
        self._receive_task = asyncio.create_task(self._async_receive_loop(ws))

        if self._on_open is not None:
            try:
                self._on_open()
            except Exception:
                _LOGGER.exception("Error in open callback")
        return True

    async def async_send(self, text: str) -> bool:
        """Send a text frame.

        Returns:
            True if the frame was handed to the socket, False otherwise.

        """
        ws = self._ws
        if ws is None or ws.closed:
            _LOGGER.warning("Relay transport not open, dropping frame")
            return False

        try:
            await ws.send_str(text)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as err:
            _LOGGER.error("Failed to send frame to relay: %s", err)
            return False
        return True

    async def async_close(self) -> None:
        """Close the connection and release its resources."""
        self._closed_locally = True
        ws, self._ws = self._ws, None
        task, self._receive_task = self._receive_task, None

        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, ConnectionError) as err:
                _LOGGER.debug("Error closing relay connection: %s", err)

    async def _async_receive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._report_error(ws.exception())
                    break
        except (aiohttp.ClientError, ConnectionError) as err:
            self._report_error(err)
        finally:
            if not self._closed_locally:
                self._report_close(ws.close_code, None)

    def _dispatch_text(self, text: str) -> None:
        try:
            self._on_text(text)
        except Exception:
            _LOGGER.exception("Error in text frame callback")

    def _report_error(self, cause: BaseException | None) -> None:
        _LOGGER.debug("Relay connection error: %s", cause)
        if self._on_error is None:
            return
        try:
            self._on_error(cause)
        except Exception:
            _LOGGER.exception("Error in error callback")

    def _report_close(self, code: int | None, reason: str | None) -> None:
        _LOGGER.debug("Relay connection closed: %s %s", code, reason)
        if self._on_close is None:
            return
        try:
            self._on_close(code, reason)
        except Exception:
            _LOGGER.exception("Error in close callback")
