"""Transport interface.

This is the (small) contract that relay transport implementations should
follow. It lives outside :mod:`pingpong.protocol` so the protocol remains
transport-agnostic.
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Iterator, Optional

from ..protocol.message import Event, Filter

logger = logging.getLogger(__name__)


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """The relay did not acknowledge an operation in time."""


class TransportRejected(TransportError):
    """The relay refused a published event."""


class TransportConnectionError(TransportError):
    """The transport could not establish a connection."""


class ConnectionExhausted(TransportConnectionError):
    """Every attempt in a bounded connection burst failed."""

    exhausted = True

    def __init__(self, endpoint: str, attempts: int, last: Optional[BaseException] = None):
        self.endpoint = endpoint
        self.attempts = attempts
        self.last = last
        super().__init__(f"failed to connect to {endpoint} after {attempts} attempts: {last}")


class TransportFailure(TransportError):
    """The connection is unusable; the session must be rebuilt."""


class TransportClosed(TransportFailure):
    """The connection was closed."""


class TransportBrokenPipe(TransportFailure):
    """A write found the connection broken."""


class TransportReset(TransportFailure):
    """The connection was reset by the peer."""


_FATAL_OS_ERRORS = (BrokenPipeError, ConnectionResetError, ConnectionAbortedError)


def is_transport_failure(err: Optional[BaseException]) -> bool:
    """True if *err* means the connection is dead and must be replaced.

    Everything else raised by a send or subscribe (timeouts, rejections,
    signing errors) is transient: log it and move on.
    """
    return isinstance(err, TransportFailure) or isinstance(err, _FATAL_OS_ERRORS)


def translate(err: BaseException) -> TransportError:
    """Map a builtin socket error onto the transport error hierarchy."""
    if isinstance(err, TransportError):
        return err
    if isinstance(err, BrokenPipeError):
        return TransportBrokenPipe(str(err) or "broken pipe")
    if isinstance(err, (ConnectionResetError, ConnectionAbortedError)):
        return TransportReset(str(err) or "connection reset by peer")
    return TransportError(str(err))


_END = object()


class Subscription:
    """Client-side subscription: a blocking stream of matching events.

    Iterating blocks until the next event arrives or the stream ends. The
    stream ends when the subscription or its connection is closed; the
    reason is kept in :attr:`reason` (None after a deliberate close).
    """

    def __init__(self, sub_id: str, filter: Filter, connection: Optional["Connection"] = None):
        self.id = sub_id
        self.filter = filter
        self.connection = connection
        self.reason: Optional[BaseException] = None
        self._queue: "queue.SimpleQueue" = queue.SimpleQueue()
        self._ended = threading.Event()

    def __iter__(self) -> Iterator[Event]:
        while True:
            item = self._queue.get()
            if item is _END:
                # Leave the marker in place for any other reader.
                self._queue.put(_END)
                return
            yield item

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    def deliver(self, event: Event) -> None:
        if self._ended.is_set():
            return
        if not self.filter.matches(event):
            logger.debug("subscription %s: dropped non-matching %r", self.id, event)
            return
        self._queue.put(event)

    def end(self, reason: Optional[BaseException] = None) -> None:
        if self._ended.is_set():
            return
        self.reason = reason
        self._ended.set()
        self._queue.put(_END)

    def close(self) -> None:
        """Stop receiving; the stream ends without a failure reason."""
        if self._ended.is_set():
            return
        connection = self.connection
        if connection is not None:
            connection.unsubscribe(self)
        self.end(None)


class Connection(ABC):
    """Minimal contract for a relay connection."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint

    @abstractmethod
    def open(self, timeout: Optional[float] = None) -> None:
        """Establish the underlying connection/socket."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the connection, ending every subscription."""

    @abstractmethod
    def publish(self, event: Event) -> None:
        """Send a signed event to the relay."""

    @abstractmethod
    def subscribe(self, filter: Filter) -> Subscription:
        """Ask the relay for events matching *filter*."""

    def unsubscribe(self, subscription: Subscription) -> None:
        """Tell the relay to stop sending events for *subscription*."""

    @property
    def is_open(self) -> bool:
        """Whether the connection is currently usable."""
        return False
