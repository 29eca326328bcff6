"""ZeroMQ forwarding relay transport.

The relay is a plain XSUB/XPUB forwarder: events are published to its XSUB
port, and read back from its XPUB port, which is by convention the next
port up. An endpoint of ``tcp://relay.example.com:7000`` therefore means
XSUB on 7000 and XPUB on 7001.

ZeroMQ sockets are not thread safe; all socket activity after the initial
connection happens in one background thread, fed through a queue and an
inproc PAIR socket used as a wakeup signal.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit

import zmq
from zmq.utils.monitor import recv_monitor_message

from ... import identity
from ...protocol.message import Event, Filter
from .. import base
from ..base import Subscription, TransportClosed, TransportConnectionError, TransportError
from .framing import from_frames, prefixes, to_frames

logger = logging.getLogger(__name__)

zmq_context = zmq.Context()

_MONITOR_EVENTS = zmq.EVENT_CONNECTED | zmq.EVENT_DISCONNECTED


def split(endpoint: str) -> Tuple[str, str]:
    """Return the (XSUB, XPUB) addresses for a relay *endpoint*."""

    parsed = urlsplit(endpoint)
    if parsed.scheme != "tcp" or parsed.hostname is None or parsed.port is None:
        raise TransportConnectionError(f"not a tcp://host:port relay endpoint: {endpoint}")

    host = parsed.hostname
    if ":" in host:
        host = f"[{host}]"

    return (f"tcp://{host}:{parsed.port}", f"tcp://{host}:{parsed.port + 1}")


class Connection(base.Connection):
    """PUB/SUB socket pair attached to a forwarding relay."""

    def __init__(self, endpoint: str, publish_timeout: Optional[float] = None):
        super().__init__(endpoint)
        self.pub = None
        self.sub = None
        self.reason: Optional[TransportError] = None

        self._monitors = ()
        self._closed = threading.Event()
        self._opened = False
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Subscription] = {}
        self._ids = itertools.count(1)
        self._outbox: "queue.SimpleQueue" = queue.SimpleQueue()
        self._signal_rx = None
        self._signal_tx = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed.is_set()

    def open(self, timeout: Optional[float] = None) -> None:
        publish_address, subscribe_address = split(self.endpoint)

        self.pub = zmq_context.socket(zmq.PUB)
        self.pub.setsockopt(zmq.LINGER, 0)
        self.pub.setsockopt(zmq.IMMEDIATE, 1)
        self.sub = zmq_context.socket(zmq.SUB)
        self.sub.setsockopt(zmq.LINGER, 0)

        self._monitors = (
            self.pub.get_monitor_socket(_MONITOR_EVENTS),
            self.sub.get_monitor_socket(_MONITOR_EVENTS),
        )

        self.pub.connect(publish_address)
        self.sub.connect(subscribe_address)

        try:
            self._await_connected(10.0 if timeout is None else timeout)
        except TransportConnectionError:
            self._close_sockets()
            raise

        internal = f"inproc://relay.Connection:signal:{id(self)}"
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)

        self._opened = True
        self._thread = threading.Thread(target=self.run, name=f"relay:{self.endpoint}", daemon=True)
        self._thread.start()

    def _await_connected(self, timeout: float) -> None:
        """Block until both sockets report a TCP connection to the relay.

        ZeroMQ connects in the background and retries forever; the monitor
        sockets are the only way to know whether anybody is listening.
        """

        poller = zmq.Poller()
        waiting = set(self._monitors)
        for monitor in waiting:
            poller.register(monitor, zmq.POLLIN)

        deadline = time.monotonic() + timeout

        while waiting:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TransportConnectionError(f"{self.endpoint}: no relay answered in {timeout:.1f} sec")

            for monitor, _flag in poller.poll(remaining * 1000):
                message = recv_monitor_message(monitor)
                if message["event"] == zmq.EVENT_CONNECTED:
                    waiting.discard(monitor)
                    poller.unregister(monitor)

    def close(self) -> None:
        self._shutdown(TransportClosed("connection closed"))

        thread = self._thread
        if thread is None:
            self._close_sockets()
        elif thread is not threading.current_thread():
            thread.join(1.0)

    # --- outbound ---

    def _submit(self, action: str, argument) -> None:
        with self._lock:
            if self._closed.is_set():
                raise TransportClosed("connection closed")
            self._outbox.put((action, argument))
            try:
                self._signal_tx.send(b"")
            except zmq.ZMQError as exc:
                raise TransportClosed(f"connection closed: {exc}") from exc

    def publish(self, event: Event) -> None:
        self._submit("publish", to_frames(event))

    def subscribe(self, filter: Filter) -> Subscription:
        sub_id = f"pingpong:{next(self._ids)}"
        subscription = Subscription(sub_id, filter, self)

        with self._lock:
            self._subscriptions[sub_id] = subscription

        try:
            for prefix in prefixes(filter):
                self._submit("subscribe", prefix)
        except TransportError:
            with self._lock:
                self._subscriptions.pop(sub_id, None)
            raise

        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            known = self._subscriptions.pop(subscription.id, None)

        if known is None:
            return

        for prefix in prefixes(subscription.filter):
            try:
                self._submit("unsubscribe", prefix)
            except TransportClosed:
                return

    # --- background thread ---

    def _outgoing(self) -> None:
        self._signal_rx.recv(flags=zmq.NOBLOCK)
        action, argument = self._outbox.get(block=False)

        if action == "publish":
            self.pub.send_multipart(argument)
        elif action == "subscribe":
            self.sub.setsockopt(zmq.SUBSCRIBE, argument)
        elif action == "unsubscribe":
            self.sub.setsockopt(zmq.UNSUBSCRIBE, argument)

    def _incoming(self, parts) -> None:
        try:
            event = from_frames(parts)
        except ValueError:
            logger.debug("ignoring malformed relay message: %r", parts)
            return

        if not identity.verify(event):
            logger.warning("dropped event %s with an invalid signature", event.id)
            return

        with self._lock:
            subscriptions = list(self._subscriptions.values())

        for subscription in subscriptions:
            subscription.deliver(event)

    def run(self) -> None:
        poller = zmq.Poller()
        poller.register(self.sub, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)
        for monitor in self._monitors:
            poller.register(monitor, zmq.POLLIN)

        reason: Optional[TransportError] = None

        try:
            while not self._closed.is_set() and reason is None:
                for active, _flag in poller.poll(10000):
                    if active == self._signal_rx:
                        try:
                            self._outgoing()
                        except queue.Empty:
                            pass
                    elif active == self.sub:
                        parts = self.sub.recv_multipart()
                        try:
                            self._incoming(parts)
                        except Exception:
                            logger.exception("error handling relay message from %s", self.endpoint)
                    else:
                        message = recv_monitor_message(active)
                        if message["event"] == zmq.EVENT_DISCONNECTED:
                            reason = TransportClosed(f"relay {self.endpoint} disconnected")
        except zmq.ZMQError as exc:
            reason = TransportClosed(f"connection closed: {exc}")
        except Exception:
            logger.exception("relay connection %s failed", self.endpoint)
            reason = TransportClosed("connection closed")
        finally:
            self._shutdown(reason or TransportClosed("connection closed"))
            self._close_sockets()

    def _shutdown(self, reason: TransportError) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            self.reason = reason
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()

            # Wake the background thread so it notices.
            if self._signal_tx is not None:
                try:
                    self._signal_tx.send(b"", flags=zmq.NOBLOCK)
                except zmq.ZMQError:
                    pass

        for subscription in subscriptions:
            subscription.end(reason)

    def _close_sockets(self) -> None:
        for socket in (self.pub, self.sub):
            if socket is not None:
                try:
                    socket.disable_monitor()
                except zmq.ZMQError:
                    pass

        for socket in self._monitors + (self.pub, self.sub, self._signal_rx, self._signal_tx):
            if socket is not None:
                socket.close(linger=0)
