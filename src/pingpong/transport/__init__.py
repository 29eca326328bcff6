"""Relay transport implementations."""

from urllib.parse import urlsplit

from .base import (
    Connection,
    ConnectionExhausted,
    Subscription,
    TransportError,
    TransportTimeout,
    TransportRejected,
    TransportConnectionError,
    TransportFailure,
    TransportClosed,
    TransportBrokenPipe,
    TransportReset,
    is_transport_failure,
)

from . import websocket
from . import zmq

_BACKENDS = {
    "ws": websocket.Connection,
    "wss": websocket.Connection,
    "tcp": zmq.Connection,
}


def backend(endpoint):
    """ Return the :class:`Connection` subclass that handles *endpoint*,
        chosen by URL scheme.
    """

    scheme = urlsplit(endpoint).scheme.lower()

    try:
        return _BACKENDS[scheme]
    except KeyError:
        raise TransportConnectionError("unsupported relay endpoint: " + repr(endpoint))


def connect(endpoint, timeout=None, publish_timeout=None):
    """ Open and return a connection to the relay at *endpoint*. Any failure
        is reported as a :class:`TransportConnectionError`.
    """

    connection = backend(endpoint)(endpoint, publish_timeout=publish_timeout)
    connection.open(timeout)
    return connection
