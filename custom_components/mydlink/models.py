"""Data models for the mydlink integration."""

from dataclasses import dataclass
from enum import StrEnum


@dataclass(frozen=True)
class MydlinkDevice:
    """Represents an entry of the account device list."""

    id: str
    mac: str | None
    name: str | None
    model: str | None
    online: bool


@dataclass(slots=True)
class MydlinkDeviceInfo:
    """Detailed device information reported by the mydlink API.

    Every field is externally sourced and may be absent.
    """

    id: str | None
    mac: str | None
    name: str | None = None
    model: str | None = None
    online: bool = False
    relay_url: str | None = None
    device_token: str | None = None
    pin_code: str | None = None
    private_ip: str | None = None
    private_port: str | None = None
    firmware_version: str | None = None
    switch_state: bool | None = None


@dataclass(frozen=True)
class MydlinkUserInfo:
    """Account information of the signed in user."""

    email: str | None
    user_uuid: str | None
    country: str | None
    language: str | None


@dataclass(frozen=True)
class DeviceSession:
    """Everything needed to open a relay session for one device.

    Rebuilt from freshly fetched device info on every connection attempt.
    """

    device_id: str
    mac_address: str
    relay_url: str
    device_token: str
    access_token: str
    owner_email: str


class ConnectionState(StrEnum):
    """State of a Signal Agent client."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SIGNED_IN = "signed_in"
    DEGRADED = "degraded"


class PlugStatus(StrEnum):
    """Status of a plug as seen by its session controller."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class StatusDetail(StrEnum):
    """Reason attached to a plug status."""

    NONE = "none"
    CONFIGURATION_ERROR = "configuration_error"
    COMMUNICATION_ERROR = "communication_error"
    BRIDGE_OFFLINE = "bridge_offline"
