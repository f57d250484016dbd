"""Pytest configuration and fixtures for mydlink tests."""

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

RELAY_URL = "wss://mp-eu-dcdda.auto.mydlink.com:443/SwitchCamera"
ACCESS_TOKEN = "test_access_token"
USER_EMAIL = "test@example.com"
DEVICE_ID = "12345678"
DEVICE_TOKEN = "device_token_abc"
DEVICE_MAC = "B0:C5:54:00:11:22"


@dataclass
class FakeMessage:
    """Minimal stand-in for aiohttp.WSMessage."""

    type: aiohttp.WSMsgType
    data: Any = None


class FakeWebSocket:
    """In-memory relay connection.

    Inbound frames are queued with feed_* and delivered to the receive loop
    in order. Outbound frames are recorded in sent; on_send, when set, is
    called with every decoded outbound frame so tests can script replies.
    """

    def __init__(self) -> None:
        """Initialize the fake socket."""
        self.sent: list[str] = []
        self.closed = False
        self.protocol = "mydlink-ws"
        self.close_code: int | None = None
        self.on_send: Callable[[dict[str, Any]], None] | None = None
        self.send_error: BaseException | None = None
        self._exception: BaseException | None = None
        self._queue: asyncio.Queue[FakeMessage | None] = asyncio.Queue()

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        """Return the decoded outbound frames."""
        return [json.loads(text) for text in self.sent]

    async def send_str(self, data: str) -> None:
        """Record an outbound frame."""
        if self.send_error is not None:
            raise self.send_error
        if self.closed:
            error_msg = "Cannot write to closing transport"
            raise ConnectionResetError(error_msg)
        self.sent.append(data)
        if self.on_send is not None:
            self.on_send(json.loads(data))

    def feed_text(self, text: str) -> None:
        """Queue an inbound text frame."""
        self._queue.put_nowait(FakeMessage(aiohttp.WSMsgType.TEXT, text))

    def feed_json(self, data: dict[str, Any]) -> None:
        """Queue an inbound JSON frame."""
        self.feed_text(json.dumps(data))

    def feed_error(self, error: BaseException) -> None:
        """Queue a connection error."""
        self._exception = error
        self._queue.put_nowait(FakeMessage(aiohttp.WSMsgType.ERROR))

    def remote_close(self, code: int = 1006) -> None:
        """Simulate the relay dropping the connection."""
        self.close_code = code
        self._queue.put_nowait(None)

    def exception(self) -> BaseException | None:
        """Return the last connection error."""
        return self._exception

    async def close(self) -> bool:
        """Close the socket locally."""
        if self.closed:
            return False
        self.closed = True
        self.close_code = 1000
        self._queue.put_nowait(None)
        return True

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> FakeMessage:
        message = await self._queue.get()
        if message is None:
            self.closed = True
            raise StopAsyncIteration
        return message


async def drain_loop(rounds: int = 10) -> None:
    """Let queued callbacks and the receive task run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def reply_to(ws: FakeWebSocket, command: str, code: int = 0) -> None:
    """Make ws answer every frame of the given command with code."""
    previous = ws.on_send

    def _on_send(frame: dict[str, Any]) -> None:
        if frame["command"] == command:
            ws.feed_json(
                {
                    "command": command,
                    "sequence_id": frame["sequence_id"],
                    "code": code,
                }
            )
        elif previous is not None:
            previous(frame)

    ws.on_send = _on_send


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    """Fixture providing a fake relay WebSocket."""
    return FakeWebSocket()


@pytest.fixture
def mock_ws_session(fake_ws: FakeWebSocket) -> Mock:
    """Fixture providing an aiohttp session that connects to fake_ws."""
    session = Mock(spec=aiohttp.ClientSession)
    session.ws_connect = AsyncMock(return_value=fake_ws)
    return session


@pytest.fixture
def sample_device_list_response() -> dict:
    """Fixture providing a sample device list API response.

    Returns:
        A dictionary representing a device list API response.

    """
    return {
        "data": [
            {
                "mydlink_id": DEVICE_ID,
                "mac": DEVICE_MAC,
                "device_name": "Living Room Plug",
                "device_model": "DSP-W118",
                "online": True,
            },
            {
                "mydlink_id": "87654321",
                "mac": "B0:C5:54:00:33:44",
                "device_name": "Kitchen Plug",
                "device_model": "DSP-W218",
                "online": False,
            },
        ],
    }


@pytest.fixture
def sample_device_info_response() -> dict:
    """Fixture providing a sample device info API response.

    Returns:
        A dictionary representing a device info API response.

    """
    return {
        "data": [
            {
                "mydlink_id": DEVICE_ID,
                "device_name": "Living Room Plug",
                "device_model": "DSP-W118",
                "online": True,
                "DCD": RELAY_URL,
                "device_token": DEVICE_TOKEN,
                "pin_code": "123456",
                "private_ip": "192.168.1.50",
                "private_port": 8080,
                "fw_ver": "1.02.03",
                "change_cache": {
                    "setting_change": [
                        {"metadata": {"type": 9, "value": 3.2}},
                        {"metadata": {"type": 16, "value": 1}},
                    ],
                },
            },
        ],
    }


@pytest.fixture
def sample_user_info_response() -> dict:
    """Fixture providing a sample user info API response."""
    return {
        "data": {
            "email": USER_EMAIL,
            "user_uuid": "uuid-1",
            "country": "DE",
            "language": "de",
        },
    }
