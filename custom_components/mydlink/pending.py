"""Correlation of Signal Agent requests with their responses.

Every outgoing request registers its sequence id here and receives a future.
The future is fulfilled exactly once: by the matching response, by a
setting-change event standing in for it (resolve_any), or by its timeout.
Late and duplicate resolutions are silently ignored.

All methods must be called from the event loop thread. Nothing in here
awaits, so each call runs to completion without interleaving with the
receive task.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .const import WEBSOCKET_TIMEOUT
from .exceptions import MydlinkCommunicationError, MydlinkTimeoutError

if TYPE_CHECKING:
    from .protocol import SignalAgentResponse

_LOGGER = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """A request awaiting its response."""

    sequence_id: int
    command: str
    future: asyncio.Future[SignalAgentResponse]
    created_at: float = field(default_factory=time.monotonic)
    timeout_handle: asyncio.TimerHandle | None = None


class PendingRequestTable:
    """Maps sequence ids of in-flight requests to their result futures."""

    def __init__(self, timeout: float = WEBSOCKET_TIMEOUT) -> None:
        self._timeout = timeout
        # Insertion ordered, so iteration yields the oldest request first.
        self._requests: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, sequence_id: object) -> bool:
        return sequence_id in self._requests

    def register(
        self, sequence_id: int, command: str
    ) -> asyncio.Future[SignalAgentResponse]:
        """Register a request and return the future carrying its response.

        The future fails with MydlinkTimeoutError if nothing resolves it
        within the table timeout.

        Raises:
            ValueError: If the sequence id is still pending.

        """
        if sequence_id in self._requests:
            error_msg = f"Sequence id {sequence_id} is already pending"
            raise ValueError(error_msg)

        loop = asyncio.get_running_loop()
        future: asyncio.Future[SignalAgentResponse] = loop.create_future()
        request = PendingRequest(
            sequence_id=sequence_id, command=command, future=future
        )
        request.timeout_handle = loop.call_later(
            self._timeout, self.expire, sequence_id
        )
        self._requests[sequence_id] = request
        future.add_done_callback(lambda _: self._discard_request(request))
        _LOGGER.debug("Registered %s request %d", command, sequence_id)
        return future

    def resolve(self, sequence_id: int, message: SignalAgentResponse) -> bool:
        """Fulfil the request with the given sequence id.

        Returns:
            True if a pending request was fulfilled, False otherwise.

        """
        request = self._requests.pop(sequence_id, None)
        if request is None:
            return False
        return self._complete(request, message)

    def resolve_any(
        self, message: SignalAgentResponse, command: str | None = None
    ) -> bool:
        """Fulfil the oldest pending request, optionally of one command.

        The message is re-addressed to the sequence id of the request it
        resolves.

        Returns:
            True if a pending request was fulfilled, False otherwise.

        """
        for request in list(self._requests.values()):
            if command is not None and request.command != command:
                continue
            del self._requests[request.sequence_id]
            resolved = dataclasses.replace(message, sequence_id=request.sequence_id)
            if self._complete(request, resolved):
                return True
        return False

    def expire(self, sequence_id: int) -> bool:
        """Fail the request with a timeout.

        Returns:
            True if a pending request was expired, False otherwise.

        """
        request = self._requests.pop(sequence_id, None)
        if request is None or request.future.done():
            return False
        _LOGGER.debug(
            "%s request %d timed out after %.1fs",
            request.command,
            sequence_id,
            time.monotonic() - request.created_at,
        )
        self._cancel_timer(request)
        request.future.set_exception(
            MydlinkTimeoutError(f"{request.command} request {sequence_id} timed out")
        )
        return True

    def discard(self, sequence_id: int) -> None:
        """Drop a request that will never be answered, cancelling its future."""
        request = self._requests.pop(sequence_id, None)
        if request is None:
            return
        self._cancel_timer(request)
        request.future.cancel()

    def fail_all(self, error: MydlinkCommunicationError) -> int:
        """Fail every pending request with the given error.

        Returns:
            The number of requests that were failed.

        """
        requests = list(self._requests.values())
        self._requests.clear()
        failed = 0
        for request in requests:
            self._cancel_timer(request)
            if not request.future.done():
                request.future.set_exception(error)
                failed += 1
        return failed

    def _complete(self, request: PendingRequest, message: SignalAgentResponse) -> bool:
        self._cancel_timer(request)
        if request.future.done():
            return False
        request.future.set_result(message)
        return True

    def _discard_request(self, request: PendingRequest) -> None:
        # The future may be cancelled by its awaiting task going away.
        self._cancel_timer(request)
        if self._requests.get(request.sequence_id) is request:
            del self._requests[request.sequence_id]

    @staticmethod
    def _cancel_timer(request: PendingRequest) -> None:
        if request.timeout_handle is not None:
            request.timeout_handle.cancel()
            request.timeout_handle = None
