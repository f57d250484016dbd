"""API client for the mydlink cloud.

This module provides functions to interact with the mydlink REST API,
including device listing and device metadata lookup. Device control
itself goes through the Signal Agent relay, see signal_agent.py.
"""

import logging
from typing import Any

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client
from httpx_retries import Retry, RetryTransport

from .const import API_TIMEOUT, API_URL, SA_TYPE_PLUG, USER_AGENT
from .models import MydlinkDevice, MydlinkDeviceInfo, MydlinkUserInfo

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403

# OAuth2 bearer error codes reported in the response body
AUTH_ERROR_CODES = ("invalid_token", "invalid_grant", "unauthorized_client")


class MydlinkApiClientError(Exception):
    """Base exception for mydlink API client errors."""


class MydlinkApiAuthError(MydlinkApiClientError):
    """Exception raised for authentication errors."""


def create_headers(*, json_body: bool = False) -> dict[str, str]:
    """Create HTTP headers for mydlink API requests.

    Args:
        json_body: Whether the request carries a JSON body.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    headers = {
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


def get_base_url(api_site: str | None = None) -> str:
    """Return the base URL for API requests.

    The login response of the mydlink cloud assigns each account a regional
    API site, which is reported without scheme.
    """
    base = api_site or API_URL
    if not base.startswith("http"):
        base = f"https://{base}"
    return base.rstrip("/")


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error."""
    return status >= HTTP_BAD_REQUEST


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates an authentication error."""
    return status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN)


def is_api_error(data: dict[str, Any]) -> bool:
    """Check if API response body reports an error."""
    return bool(data.get("error"))


def is_auth_api_error(data: dict[str, Any]) -> bool:
    """Check if API response body reports an invalid or expired token."""
    return data.get("error") in AUTH_ERROR_CODES


def validate_response(response: httpx.Response) -> dict[str, Any]:
    """Validate HTTP response and return parsed JSON data.

    Args:
        response: HTTP response object to validate.

    Returns:
        Parsed JSON data from response.

    Raises:
        MydlinkApiAuthError: If authentication error is detected.
        MydlinkApiClientError: If API error is detected.

    """
    _validate_http_status(response)
    try:
        data = response.json()
    except ValueError as err:
        error_msg = f"Invalid JSON in API response: {err}"
        raise MydlinkApiClientError(error_msg) from err
    if not isinstance(data, dict):
        error_msg = "Unexpected API response format"
        raise MydlinkApiClientError(error_msg)
    _validate_api_status(data)
    return data


def _validate_http_status(response: httpx.Response) -> None:
    if not is_http_error(response.status_code):
        return

    if is_auth_error(response.status_code):
        auth_error = "Authentication error"
        raise MydlinkApiAuthError(auth_error)

    client_error = f"Request failed: {response.status_code}"
    raise MydlinkApiClientError(client_error)


def _validate_api_status(data: dict[str, Any]) -> None:
    if not is_api_error(data):
        return

    error_message = str(data.get("error_description") or data["error"])

    if is_auth_api_error(data):
        raise MydlinkApiAuthError(error_message)

    raise MydlinkApiClientError(error_message)


def _get_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return None if value is None else str(value)


def extract_devices(data: dict[str, Any]) -> list[MydlinkDevice]:
    """Extract device list from API response.

    Entries without a mydlink id cannot be addressed and are skipped.
    """
    devices = []
    for entry in data.get("data") or []:
        device_id = _get_str(entry, "mydlink_id")
        if not device_id:
            _LOGGER.debug("Skipping device list entry without mydlink_id: %s", entry)
            continue
        devices.append(
            MydlinkDevice(
                id=device_id,
                mac=_get_str(entry, "mac"),
                name=_get_str(entry, "device_name"),
                model=_get_str(entry, "device_model"),
                online=bool(entry.get("online", False)),
            )
        )
    return devices


def extract_switch_state(device: dict[str, Any]) -> bool | None:
    """Extract the cached plug state from a device info entry.

    The cloud keeps the latest setting changes of a device in
    change_cache.setting_change; the last plug-type entry wins.
    """
    cache = device.get("change_cache")
    if not isinstance(cache, dict):
        return None

    state = None
    for setting in cache.get("setting_change") or []:
        metadata = setting.get("metadata") if isinstance(setting, dict) else None
        if not isinstance(metadata, dict):
            continue
        if metadata.get("type") == SA_TYPE_PLUG:
            state = metadata.get("value") == 1
    return state


def extract_device_info(data: dict[str, Any], mac: str) -> MydlinkDeviceInfo | None:
    """Extract detailed device information from API response.

    Args:
        data: API response data dictionary.
        mac: MAC address the info was requested for.

    Returns:
        MydlinkDeviceInfo for the first entry, or None if the response is empty.

    """
    entries = data.get("data") or []
    if not entries:
        return None

    device = entries[0]
    return MydlinkDeviceInfo(
        id=_get_str(device, "mydlink_id"),
        mac=mac,
        name=_get_str(device, "device_name"),
        model=_get_str(device, "device_model"),
        online=bool(device.get("online", False)),
        relay_url=_get_str(device, "DCD"),
        device_token=_get_str(device, "device_token"),
        pin_code=_get_str(device, "pin_code"),
        private_ip=_get_str(device, "private_ip"),
        private_port=_get_str(device, "private_port"),
        firmware_version=_get_str(device, "fw_ver"),
        switch_state=extract_switch_state(device),
    )


def extract_user_info(data: dict[str, Any]) -> MydlinkUserInfo | None:
    """Extract user information from API response."""
    user = data.get("data")
    if not isinstance(user, dict):
        return None
    return MydlinkUserInfo(
        email=_get_str(user, "email"),
        user_uuid=_get_str(user, "user_uuid"),
        country=_get_str(user, "country"),
        language=_get_str(user, "language"),
    )


def create_session_client(hass: HomeAssistant) -> httpx.AsyncClient:
    """Create HTTP client with retry logic for the mydlink API.

    Args:
        hass: Home Assistant instance.

    Returns:
        Configured httpx AsyncClient with retry transport.

    """
    base_client = create_async_httpx_client(hass, timeout=float(API_TIMEOUT))
    retry = Retry(total=3, backoff_factor=0.5)
    base_client._transport = RetryTransport(  # noqa: SLF001
        transport=base_client._transport,  # noqa: SLF001
        retry=retry,
    )
    return base_client


async def async_get_devices(
    session: httpx.AsyncClient,
    access_token: str,
    api_site: str | None = None,
) -> list[MydlinkDevice]:
    """Fetch all devices registered to the account.

    Raises:
        MydlinkApiAuthError: If authentication fails.
        MydlinkApiClientError: If API request fails.

    """
    url = f"{get_base_url(api_site)}/me/device/list"

    _LOGGER.debug("Fetching devices from mydlink API")
    response = await session.get(
        url, headers=create_headers(), params={"access_token": access_token}
    )
    data = validate_response(response)
    devices = extract_devices(data)
    _LOGGER.debug("Retrieved %d devices from mydlink API", len(devices))
    return devices


async def async_get_device_info(
    session: httpx.AsyncClient,
    access_token: str,
    device_id: str,
    mac: str,
    api_site: str | None = None,
) -> MydlinkDeviceInfo | None:
    """Fetch detailed information for a single device.

    Args:
        session: HTTP client session.
        access_token: Account access token.
        device_id: mydlink device identifier.
        mac: MAC address of the device.
        api_site: Regional API site of the account.

    Returns:
        MydlinkDeviceInfo, or None if the API returned no entry.

    Raises:
        MydlinkApiAuthError: If authentication fails.
        MydlinkApiClientError: If API request fails.

    """
    url = f"{get_base_url(api_site)}/me/device/info"
    payload = {"data": [{"mac": mac, "mydlink_id": device_id}]}

    _LOGGER.debug("Fetching device info for %s", device_id)
    response = await session.post(
        url,
        headers=create_headers(json_body=True),
        params={"access_token": access_token},
        json=payload,
    )
    data = validate_response(response)
    info = extract_device_info(data, mac)
    if info is None:
        _LOGGER.debug("No device info returned for %s", device_id)
    return info


async def async_get_user_info(
    session: httpx.AsyncClient,
    access_token: str,
    api_site: str | None = None,
) -> MydlinkUserInfo | None:
    """Fetch account information of the token owner.

    Raises:
        MydlinkApiAuthError: If authentication fails.
        MydlinkApiClientError: If API request fails.

    """
    url = f"{get_base_url(api_site)}/me/user/info"

    _LOGGER.debug("Fetching user info from mydlink API")
    response = await session.get(
        url, headers=create_headers(), params={"access_token": access_token}
    )
    data = validate_response(response)
    return extract_user_info(data)
