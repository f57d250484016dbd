"""Constants for the mydlink integration.

This module contains all the constants used throughout the integration,
including API endpoints, Signal Agent protocol codes, timeouts and
configuration keys.
"""

DOMAIN = "mydlink"

API_URL = "https://api.auto.mydlink.com"
USER_AGENT = "HomeAssistant mydlink-integration"

# Signal Agent (SA) relay protocol
SA_SUBPROTOCOL = "mydlink-ws"
SA_ORIGIN = "https://mydlink.com"
SA_CLIENT_NAME = "homeassistant-mydlink"
SA_ROLE = "client_agent"
SA_SCOPE = (
    "user",
    "device:status",
    "device:control",
    "viewing",
    "photo",
    "policy",
    "client",
    "event",
)

SA_COMMAND_SIGN_IN = "sign_in"
SA_COMMAND_SET_SETTING = "set_setting"
SA_COMMAND_EVENT = "event"

SA_TYPE_PLUG = 16
SA_TYPE_POWER = 9
SA_EVENT_SETTING_CHANGE = 61

SA_CODE_SUCCESS = 0
SA_CODE_UNKNOWN = -1

# Timeouts and delays (seconds)
API_TIMEOUT = 30
WEBSOCKET_TIMEOUT = 10
WEBSOCKET_CONNECT_TIMEOUT = 15
WEBSOCKET_HEARTBEAT = 30
RECONNECT_DELAY = 60
DEFAULT_POLL_INTERVAL = 60

CONF_API_SITE = "api_site"

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_TIMEOUT = "timeout_error"
ERROR_API_ERROR = "api_error"
ERROR_UNKNOWN = "unknown_error"

CHANNEL_SWITCH = "switch"
CHANNEL_POWER = "power"
CHANNEL_ONLINE = "online"
CHANNEL_STATUS = "status"
