"""Tests for the Signal Agent client."""

import asyncio
from typing import Any
from unittest.mock import Mock

import pytest
from conftest import (
    ACCESS_TOKEN,
    DEVICE_TOKEN,
    RELAY_URL,
    USER_EMAIL,
    FakeWebSocket,
    drain_loop,
    reply_to,
)

from custom_components.mydlink.const import (
    SA_COMMAND_SET_SETTING,
    SA_COMMAND_SIGN_IN,
    SA_TYPE_PLUG,
)
from custom_components.mydlink.models import ConnectionState
from custom_components.mydlink.signal_agent import SignalAgentClient

SHORT_TIMEOUT = 0.05
POWER_READING = 42.5


@pytest.fixture
def listener() -> Mock:
    """Create a listener recording every notification."""
    return Mock()


@pytest.fixture
def client(mock_ws_session: Mock, listener: Mock) -> SignalAgentClient:
    """Create a SignalAgentClient with a short request timeout."""
    return SignalAgentClient(
        mock_ws_session,
        ACCESS_TOKEN,
        USER_EMAIL,
        listener=listener,
        timeout=SHORT_TIMEOUT,
    )


async def connect(client: SignalAgentClient, ws: FakeWebSocket) -> None:
    """Sign the client in against a relay that accepts the sign-in."""
    reply_to(ws, SA_COMMAND_SIGN_IN)
    assert await client.async_connect(RELAY_URL) is True


def setting_event(device_id: str, setting_type: int, value: Any) -> dict[str, Any]:  # noqa: ANN401
    """Build a setting change event frame."""
    return {
        "command": "event",
        "device_id": device_id,
        "event": {"type": 61, "metadata": {"type": setting_type, "value": value}},
    }


class TestSignalAgentClientConnect:
    """Tests for async_connect method."""

    @pytest.mark.asyncio
    async def test_async_connect_signs_in(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that async_connect opens the relay and signs in."""
        await connect(client, fake_ws)
        assert client.state is ConnectionState.SIGNED_IN
        assert client.connected is True
        sign_in = fake_ws.sent_frames[0]
        assert sign_in["command"] == SA_COMMAND_SIGN_IN
        assert sign_in["sequence_id"] == 1
        assert sign_in["owner_id"] == USER_EMAIL
        assert sign_in["owner_token"] == ACCESS_TOKEN
        listener.on_connection_state_changed.assert_called_once_with(True)
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_async_connect_when_signed_in_is_noop(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        mock_ws_session: Mock,
    ) -> None:
        """Test that connecting twice keeps the existing session."""
        await connect(client, fake_ws)
        assert await client.async_connect(RELAY_URL) is True
        assert mock_ws_session.ws_connect.await_count == 1
        assert len(fake_ws.sent) == 1
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_async_connect_fails_when_sign_in_rejected(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a non-zero sign-in code fails the connection."""
        reply_to(fake_ws, SA_COMMAND_SIGN_IN, code=401)
        assert await client.async_connect(RELAY_URL) is False
        assert client.state is ConnectionState.DISCONNECTED
        assert client.connected is False
        assert fake_ws.closed is True
        listener.on_connection_state_changed.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_connect_fails_when_sign_in_times_out(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that an unanswered sign-in fails after the timeout."""
        assert await client.async_connect(RELAY_URL) is False
        assert client.state is ConnectionState.DISCONNECTED
        assert client.pending_requests == 0
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_async_connect_fails_when_relay_unreachable(
        self,
        client: SignalAgentClient,
        mock_ws_session: Mock,
    ) -> None:
        """Test that a failed upgrade fails the connection."""
        mock_ws_session.ws_connect.side_effect = TimeoutError()
        assert await client.async_connect(RELAY_URL) is False
        assert client.state is ConnectionState.DISCONNECTED


class TestSignalAgentClientSwitchPlug:
    """Tests for async_switch_plug method."""

    @pytest.mark.asyncio
    async def test_switch_plug_without_sign_in_sends_nothing(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that switching before sign-in fails without sending a frame."""
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is False
        assert fake_ws.sent == []

    @pytest.mark.asyncio
    async def test_switch_plug_after_rejected_sign_in_sends_nothing(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that a rejected sign-in leaves switching disabled."""
        reply_to(fake_ws, SA_COMMAND_SIGN_IN, code=1)
        await client.async_connect(RELAY_URL)
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is False
        assert len(fake_ws.sent) == 1

    @pytest.mark.asyncio
    async def test_switch_plug_on_confirmed_by_response(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that a direct response confirms the switch command."""
        await connect(client, fake_ws)
        reply_to(fake_ws, SA_COMMAND_SET_SETTING)
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is True
        frame = fake_ws.sent_frames[1]
        assert frame["command"] == SA_COMMAND_SET_SETTING
        assert frame["device_id"] == DEVICE_TOKEN
        assert frame["type"] == SA_TYPE_PLUG
        assert frame["metadata"] == {"value": 1}
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_switch_plug_off_encodes_zero(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that switching off sends the value 0."""
        await connect(client, fake_ws)
        reply_to(fake_ws, SA_COMMAND_SET_SETTING)
        assert await client.async_switch_plug(DEVICE_TOKEN, on=False) is True
        assert fake_ws.sent_frames[1]["metadata"] == {"value": 0}
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_switch_plug_fails_on_error_code(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that a non-zero response code fails the command."""
        await connect(client, fake_ws)
        reply_to(fake_ws, SA_COMMAND_SET_SETTING, code=3)
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is False
        assert client.connected is True
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_switch_plug_confirmed_by_setting_change_event(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a setting change event stands in for the response."""
        await connect(client, fake_ws)

        def _on_send(frame: dict[str, Any]) -> None:
            if frame["command"] == SA_COMMAND_SET_SETTING:
                fake_ws.feed_json(setting_event("12345678", SA_TYPE_PLUG, 1))

        fake_ws.on_send = _on_send
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is True
        listener.on_switch_state_changed.assert_called_once_with("12345678", True)
        assert client.pending_requests == 0
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_switch_plug_times_out_without_reply(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that an unanswered command fails after the timeout."""
        await connect(client, fake_ws)
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is False
        assert client.pending_requests == 0
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_sequence_ids_are_unique_and_increasing(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that every outbound request gets a fresh sequence id."""
        await connect(client, fake_ws)
        reply_to(fake_ws, SA_COMMAND_SET_SETTING)
        await client.async_switch_plug(DEVICE_TOKEN, on=True)
        await client.async_switch_plug(DEVICE_TOKEN, on=False)
        sequence_ids = [frame["sequence_id"] for frame in fake_ws.sent_frames]
        assert sequence_ids == [1, 2, 3]
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_event_with_sequence_id_resolves_only_its_request(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that an event resolving by sequence id resolves nothing else."""
        await connect(client, fake_ws)
        first = asyncio.create_task(client.async_switch_plug(DEVICE_TOKEN, on=True))
        second = asyncio.create_task(client.async_switch_plug(DEVICE_TOKEN, on=False))
        await drain_loop()
        assert client.pending_requests == 2

        event = setting_event(DEVICE_TOKEN, SA_TYPE_PLUG, 1)
        event.update(sequence_id=3, code=0)
        fake_ws.feed_json(event)
        await drain_loop()

        assert second.done()
        assert second.result() is True
        assert not first.done()
        assert client.pending_requests == 1

        await client.async_disconnect()
        assert await first is False


class TestSignalAgentClientEvents:
    """Tests for inbound event routing."""

    @pytest.mark.asyncio
    async def test_power_event_notifies_listener(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a power setting event reaches on_power_changed."""
        await connect(client, fake_ws)
        fake_ws.feed_json(setting_event("dev", 9, POWER_READING))
        await drain_loop()
        listener.on_power_changed.assert_called_once_with("dev", POWER_READING)
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_switch_event_value_zero_is_off(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a plug setting value other than 1 means off."""
        await connect(client, fake_ws)
        fake_ws.feed_json(setting_event("dev", SA_TYPE_PLUG, 0))
        await drain_loop()
        listener.on_switch_state_changed.assert_called_once_with("dev", False)
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_other_events_are_ignored(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that other event and setting types do not reach the listener."""
        await connect(client, fake_ws)
        fake_ws.feed_json(
            {
                "command": "event",
                "event": {"type": 10, "metadata": {"type": 16, "value": 1}},
            }
        )
        fake_ws.feed_json(setting_event("dev", 42, 1))
        await drain_loop()
        listener.on_switch_state_changed.assert_not_called()
        listener.on_power_changed.assert_not_called()
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_malformed_frame_is_dropped(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a malformed frame does not end the session."""
        await connect(client, fake_ws)
        fake_ws.feed_text("{not json")
        fake_ws.feed_json(setting_event("dev", SA_TYPE_PLUG, 1))
        await drain_loop()
        assert client.connected is True
        listener.on_switch_state_changed.assert_called_once_with("dev", True)
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_listener_error_does_not_end_session(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that an exception raised by the listener is contained."""
        listener.on_power_changed.side_effect = RuntimeError("boom")
        await connect(client, fake_ws)
        fake_ws.feed_json(setting_event("dev", 9, 1))
        await drain_loop()
        assert client.connected is True
        await client.async_disconnect()


class TestSignalAgentClientDisconnect:
    """Tests for connection loss and local disconnect."""

    @pytest.mark.asyncio
    async def test_remote_close_notifies_once(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a lost connection is reported exactly once."""
        await connect(client, fake_ws)
        listener.reset_mock()
        fake_ws.feed_error(ConnectionResetError("reset"))
        await drain_loop()
        listener.on_connection_state_changed.assert_called_once_with(False)
        assert client.state is ConnectionState.DEGRADED
        assert client.connected is False
        await client.async_disconnect()
        listener.on_connection_state_changed.assert_called_once_with(False)

    @pytest.mark.asyncio
    async def test_connection_loss_fails_pending_requests(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that pending commands fail when the connection drops."""
        await connect(client, fake_ws)
        task = asyncio.create_task(client.async_switch_plug(DEVICE_TOKEN, on=True))
        await drain_loop()
        assert client.pending_requests == 1
        fake_ws.remote_close()
        assert await task is False
        assert client.pending_requests == 0
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_switch_after_connection_loss_sends_nothing(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
    ) -> None:
        """Test that a degraded client refuses commands."""
        await connect(client, fake_ws)
        fake_ws.remote_close()
        await drain_loop()
        assert await client.async_switch_plug(DEVICE_TOKEN, on=True) is False
        assert len(fake_ws.sent) == 1
        await client.async_disconnect()

    @pytest.mark.asyncio
    async def test_async_disconnect_is_not_reported(
        self,
        client: SignalAgentClient,
        fake_ws: FakeWebSocket,
        listener: Mock,
    ) -> None:
        """Test that a local disconnect closes without notifying the listener."""
        await connect(client, fake_ws)
        listener.reset_mock()
        await client.async_disconnect()
        await drain_loop()
        assert client.state is ConnectionState.DISCONNECTED
        assert fake_ws.closed is True
        listener.on_connection_state_changed.assert_not_called()
