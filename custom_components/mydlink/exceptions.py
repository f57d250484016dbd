"""Exceptions raised by the mydlink Signal Agent stack."""


class MydlinkError(Exception):
    """Base exception for mydlink errors."""


class MydlinkConfigurationError(MydlinkError):
    """Raised when identifiers or credentials are missing or invalid.

    These require operator correction and are never retried.
    """


class MydlinkCommunicationError(MydlinkError):
    """Raised when the transport, handshake or a command fails."""


class MydlinkTimeoutError(MydlinkCommunicationError):
    """Raised when a pending request is not answered in time."""


class MydlinkProtocolError(MydlinkError):
    """Raised when an inbound frame cannot be parsed."""
