"""Signal Agent wire format.

Outgoing commands are JSON objects carrying a command name, a sequence id
and a timestamp. Incoming frames are either responses to a request
({sequence_id, code, message}) or asynchronous events ({command: "event"}).
A single frame may be both, so parse_frame returns each view separately.

set_setting is sent in its flat form: uid, idx, type and metadata at the top
level, with the device token as device_id. Relays have also been seen
accepting a nested "setting" array; the flat form is what current relays
answer to.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

from .const import (
    SA_CLIENT_NAME,
    SA_CODE_UNKNOWN,
    SA_COMMAND_EVENT,
    SA_COMMAND_SET_SETTING,
    SA_COMMAND_SIGN_IN,
    SA_ROLE,
    SA_SCOPE,
)
from .exceptions import MydlinkProtocolError


@dataclass(frozen=True, slots=True)
class SignalAgentResponse:
    """Reply to a request, correlated by sequence id."""

    sequence_id: int
    code: int
    message: str | None = None


@dataclass(frozen=True, slots=True)
class SettingMetadata:
    """Setting carried by an event."""

    setting_type: int
    value: float


@dataclass(frozen=True, slots=True)
class SignalAgentEvent:
    """Asynchronous event pushed by the relay."""

    event_type: int
    device_id: str
    metadata: SettingMetadata | None


@dataclass(frozen=True, slots=True)
class SignalAgentFrame:
    """A parsed inbound frame."""

    command: str
    response: SignalAgentResponse | None
    event: SignalAgentEvent | None


def _timestamp(timestamp: int | None) -> int:
    return int(time.time()) if timestamp is None else timestamp


def build_sign_in(
    sequence_id: int,
    owner_id: str,
    owner_token: str,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Build the sign_in command sent right after the socket opens."""
    return {
        "command": SA_COMMAND_SIGN_IN,
        "sequence_id": sequence_id,
        "timestamp": _timestamp(timestamp),
        "client_name": SA_CLIENT_NAME,
        "role": SA_ROLE,
        "owner_id": owner_id,
        "owner_token": owner_token,
        "scope": list(SA_SCOPE),
    }


def build_set_setting(
    sequence_id: int,
    device_token: str,
    setting_type: int,
    value: int,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Build a set_setting command for a single device setting."""
    return {
        "command": SA_COMMAND_SET_SETTING,
        "sequence_id": sequence_id,
        "timestamp": _timestamp(timestamp),
        "device_id": device_token,
        "uid": 0,
        "idx": 0,
        "type": setting_type,
        "metadata": {"value": value},
    }


def encode(message: dict[str, Any]) -> str:
    """Serialize a command for the wire."""
    return json.dumps(message, separators=(",", ":"))


def _as_int(value: Any, default: int) -> int:  # noqa: ANN401
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:  # noqa: ANN401
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_response(data: dict[str, Any]) -> SignalAgentResponse | None:
    if "sequence_id" not in data:
        return None
    sequence_id = _as_int(data["sequence_id"], -1)
    if sequence_id < 0:
        return None
    message = data.get("message")
    return SignalAgentResponse(
        sequence_id=sequence_id,
        code=_as_int(data.get("code"), SA_CODE_UNKNOWN),
        message=None if message is None else str(message),
    )


def _parse_event(data: dict[str, Any]) -> SignalAgentEvent:
    # Some relays nest the event body, others send it at the top level.
    body = data.get("event")
    if not isinstance(body, dict):
        body = data

    metadata = None
    raw_metadata = body.get("metadata")
    if isinstance(raw_metadata, dict):
        metadata = SettingMetadata(
            setting_type=_as_int(raw_metadata.get("type"), 0),
            value=_as_float(raw_metadata.get("value"), 0.0),
        )

    device_id = data.get("device_id") or body.get("device_id") or ""
    return SignalAgentEvent(
        event_type=_as_int(body.get("type"), 0),
        device_id=str(device_id),
        metadata=metadata,
    )


def parse_frame(text: str) -> SignalAgentFrame:
    """Parse an inbound text frame.

    Raises:
        MydlinkProtocolError: If the frame is not a JSON object.

    """
    try:
        data = json.loads(text)
    except ValueError as err:
        error_msg = f"Invalid JSON frame: {err}"
        raise MydlinkProtocolError(error_msg) from err

    if not isinstance(data, dict):
        error_msg = f"Unexpected frame type: {type(data).__name__}"
        raise MydlinkProtocolError(error_msg)

    command = str(data.get("command") or "")
    return SignalAgentFrame(
        command=command,
        response=_parse_response(data),
        event=_parse_event(data) if command == SA_COMMAND_EVENT else None,
    )
