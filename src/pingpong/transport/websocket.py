"""Websocket relay transport.

Speaks the NIP-01 relay protocol: JSON arrays exchanged as text frames,
``["EVENT", event]`` to publish (answered by ``["OK", id, accepted, text]``),
``["REQ", sub_id, filter]`` to subscribe (answered by any number of
``["EVENT", sub_id, event]``), and ``["CLOSE", sub_id]`` to unsubscribe.

The websocket is read by a dedicated background thread; publishing and
subscribing may happen from any thread.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, Optional

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect as ws_connect

from .. import identity
from .. import json
from ..protocol.fields import CLOSE, CLOSED, EOSE, EVENT, NOTICE, OK, REQ
from ..protocol.message import Event, Filter
from . import base
from .base import (
    Subscription,
    TransportClosed,
    TransportConnectionError,
    TransportError,
    TransportRejected,
    TransportTimeout,
)

logger = logging.getLogger(__name__)


class PendingPublish:
    """Publisher-side helper that waits for the relay's OK."""

    def __init__(self, event_id: str):
        self.id = event_id
        self.accepted: Optional[bool] = None
        self.message = ""
        self.failure: Optional[TransportError] = None
        self.done = threading.Event()

    def wait(self, timeout: Optional[float]) -> bool:
        return self.done.wait(timeout)

    def _complete(self, accepted: bool, message: str) -> None:
        self.accepted = accepted
        self.message = message
        self.done.set()

    def _fail(self, failure: TransportError) -> None:
        self.failure = failure
        self.done.set()


class Connection(base.Connection):
    """A single websocket connection to a relay."""

    publish_timeout = 7.0

    def __init__(self, endpoint: str, publish_timeout: Optional[float] = None):
        super().__init__(endpoint)
        if publish_timeout is not None:
            self.publish_timeout = publish_timeout

        self.websocket = None
        self.reason: Optional[TransportError] = None
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._subscriptions: Dict[str, Subscription] = {}
        self._pending: Dict[str, PendingPublish] = {}
        self._ids = itertools.count(1)
        self._thread: Optional[threading.Thread] = None

    @property
    def is_open(self) -> bool:
        return self.websocket is not None and not self._closed.is_set()

    def open(self, timeout: Optional[float] = None) -> None:
        try:
            self.websocket = ws_connect(self.endpoint, open_timeout=timeout)
        except (OSError, WebSocketException) as exc:
            raise TransportConnectionError(f"{self.endpoint}: {exc}") from exc

        self._thread = threading.Thread(target=self.run, name=f"relay:{self.endpoint}", daemon=True)
        self._thread.start()

    def close(self) -> None:
        self._shutdown(TransportClosed("connection closed"))
        websocket = self.websocket
        if websocket is not None:
            websocket.close()

    # --- outbound ---

    def _send(self, frame) -> None:
        text = json.dumps(frame).decode()
        with self._send_lock:
            try:
                self.websocket.send(text)
            except ConnectionClosed as exc:
                raise TransportClosed(f"connection closed: {exc}") from exc
            except OSError as exc:
                raise base.translate(exc) from exc

    def publish(self, event: Event) -> None:
        frame = [EVENT, event.to_dict()]
        pending = PendingPublish(event.id)

        with self._lock:
            if self._closed.is_set():
                raise TransportClosed("connection closed")
            self._pending[event.id] = pending

        try:
            self._send(frame)
            if not pending.wait(self.publish_timeout):
                raise TransportTimeout(f"no OK for {event.id} in {self.publish_timeout:.2f} sec")
        finally:
            with self._lock:
                self._pending.pop(event.id, None)

        if pending.failure is not None:
            raise pending.failure
        if not pending.accepted:
            raise TransportRejected(f"relay rejected {event.id}: {pending.message}")

    def subscribe(self, filter: Filter) -> Subscription:
        sub_id = f"pingpong:{next(self._ids)}"
        subscription = Subscription(sub_id, filter, self)

        with self._lock:
            if self._closed.is_set():
                raise TransportClosed("connection closed")
            self._subscriptions[sub_id] = subscription

        try:
            self._send([REQ, sub_id, filter.to_dict()])
        except TransportError:
            with self._lock:
                self._subscriptions.pop(sub_id, None)
            raise

        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            known = self._subscriptions.pop(subscription.id, None)

        if known is None or not self.is_open:
            return

        try:
            self._send([CLOSE, subscription.id])
        except TransportError as exc:
            logger.debug("unable to close subscription %s: %s", subscription.id, exc)

    # --- inbound ---

    def run(self) -> None:
        reason: Optional[TransportError] = None

        try:
            for raw in self.websocket:
                try:
                    self._incoming(raw)
                except Exception:
                    logger.exception("error handling relay message from %s", self.endpoint)
        except ConnectionClosed as exc:
            reason = TransportClosed(f"connection closed: {exc}")
        except OSError as exc:
            reason = base.translate(exc)
        finally:
            self._shutdown(reason or TransportClosed("connection closed"))

    def _incoming(self, raw) -> None:
        try:
            message = json.loads(raw)
        except json.DecodeError:
            logger.debug("ignoring undecodable relay message: %r", raw)
            return

        if not isinstance(message, list) or len(message) < 2:
            logger.debug("ignoring malformed relay message: %r", message)
            return

        label = message[0]

        if label == EVENT and len(message) >= 3:
            self._incoming_event(message[1], message[2])
        elif label == OK and len(message) >= 3:
            text = message[3] if len(message) > 3 else ""
            with self._lock:
                pending = self._pending.get(message[1])
            if pending is not None:
                pending._complete(bool(message[2]), str(text))
        elif label == CLOSED:
            with self._lock:
                subscription = self._subscriptions.pop(message[1], None)
            if subscription is not None:
                text = message[2] if len(message) > 2 else ""
                subscription.end(TransportClosed(f"relay closed subscription: {text}"))
        elif label == NOTICE:
            logger.info("notice from %s: %s", self.endpoint, message[1])
        elif label == EOSE:
            logger.debug("end of stored events for %s", message[1])
        else:
            logger.debug("ignoring relay message: %r", message)

    def _incoming_event(self, sub_id: str, data) -> None:
        with self._lock:
            subscription = self._subscriptions.get(sub_id)

        if subscription is None:
            return

        try:
            event = Event.from_dict(data)
        except ValueError:
            logger.debug("ignoring malformed event: %r", data)
            return

        if not identity.verify(event):
            logger.warning("dropped event %s with an invalid signature", event.id)
            return

        subscription.deliver(event)

    def _shutdown(self, reason: TransportError) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            self.reason = reason
            subscriptions = list(self._subscriptions.values())
            pending = list(self._pending.values())
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription.end(reason)
        for waiter in pending:
            waiter._fail(reason)
