""" Connection lifecycle: establishing a relay connection with bounded
    retries, holding the one live :class:`Session`, and replacing it when
    the transport fails.
"""

import enum
import logging
import threading
import time

from . import config
from . import transport
from .transport import ConnectionExhausted, TransportClosed, TransportConnectionError, TransportError

logger = logging.getLogger(__name__)


class State(enum.Enum):
    """ Connection state shared by both roles.
    """

    DISCONNECTED = enum.auto()
    CONNECTING = enum.auto()
    SUBSCRIBED = enum.auto()
    ACTIVE = enum.auto()
    RECONNECTING = enum.auto()
    SHUTTING_DOWN = enum.auto()



class Session:
    """ A :class:`Session` ties together a live relay *connection*, the
        *subscription* opened on it, and the *since* timestamp that
        subscription was created with. Each session carries a *version*
        number; only the :class:`ConnectionManager` creates or retires
        sessions.

        Once a session has been invalidated, :func:`publish` fails with
        :class:`pingpong.transport.TransportClosed` rather than touching the
        retired connection.
    """

    def __init__(self, connection, subscription, since, version):

        self.connection = connection
        self.subscription = subscription
        self.since = since
        self.version = version

        self._invalid = threading.Event()
        self._closed = False
        self._close_lock = threading.Lock()


    def __repr__(self):
        return 'Session(%d, %s)' % (self.version, self.connection.endpoint)


    @property
    def valid(self):
        return not self._invalid.is_set()


    def invalidate(self):
        self._invalid.set()


    def publish(self, event):

        if self._invalid.is_set():
            raise TransportClosed('session %d is no longer current' % (self.version))

        self.connection.publish(event)


    def close(self):
        """ Release the subscription, then the connection. Safe to call more
            than once, from any thread.
        """

        self.invalidate()

        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self.subscription.close()
        finally:
            self.connection.close()


# end of class Session



class ConnectionManager:
    """ Owner of the relay connection for one process. The *endpoint* is
        the relay URL; *settings* is a :class:`pingpong.config.Settings`
        instance; *shutdown* is the process-wide cancellation event.

        The *connector* and *wait* arguments exist so that the retry logic
        can be driven without a network or a clock: *connector* is called
        with the endpoint and returns an open connection, *wait* is called
        with a delay in seconds and returns True if shutdown was requested
        during the wait.
    """

    def __init__(self, endpoint, settings=None, shutdown=None, connector=None, wait=None):

        if settings is None:
            settings = config.Settings()

        if shutdown is None:
            shutdown = threading.Event()

        if connector is None:
            connector = self._connect_transport

        if wait is None:
            wait = shutdown.wait

        self.endpoint = endpoint
        self.settings = settings
        self.shutdown = shutdown
        self.connector = connector
        self.wait = wait

        self.state = State.DISCONNECTED

        self._lock = threading.RLock()
        self._session = None
        self._version = 0


    def _connect_transport(self, endpoint):
        return transport.connect(endpoint, self.settings.connect_timeout, self.settings.publish_timeout)


    @property
    def session(self):
        """ The current :class:`Session`, or None if there is no live one.
        """

        return self._session


    def connect(self):
        """ Attempt to connect up to ``settings.max_attempts`` times, with
            a capped quadratic backoff between attempts. Returns the open
            connection; raises :class:`pingpong.transport.ConnectionExhausted`
            if every attempt fails.
        """

        attempts = self.settings.max_attempts
        last = None
        attempt = 0

        while attempt < attempts:
            attempt += 1

            try:
                connection = self.connector(self.endpoint)
            except (TransportConnectionError, OSError) as e:
                last = e
                logger.info('Connection attempt %d/%d failed: %s', attempt, attempts, e)
            else:
                logger.info('connected to relay %s', self.endpoint)
                return connection

            if attempt < attempts:
                delay = self.settings.backoff(attempt)
                logger.info('Retrying in %gs...', delay)

                if self.wait(delay):
                    break

        raise ConnectionExhausted(self.endpoint, attempt, last)


    def open(self):
        """ Connect, pausing ``settings.reconnect_delay`` seconds between
            exhausted bursts of attempts. This never gives up; the only way
            out without a connection is shutdown, in which case None is
            returned.
        """

        while not self.shutdown.is_set():
            self._set_state(State.CONNECTING)

            try:
                return self.connect()
            except ConnectionExhausted as e:
                logger.info('Failed to connect to relay: %s', e)

            if self.wait(self.settings.reconnect_delay):
                break

        return None


    def subscribe(self, make_filter):
        """ Connect, subscribe using the filter returned by
            ``make_filter(since)``, and install the result as the new
            current :class:`Session`. *since* is the time the subscription
            starts. A failure to subscribe discards the connection and
            starts over after the reconnect delay. Returns None only on
            shutdown.
        """

        while True:
            connection = self.open()

            if connection is None:
                return None

            since = int(time.time())

            try:
                subscription = connection.subscribe(make_filter(since))
            except (TransportError, OSError) as e:
                logger.info('failed to subscribe: %s', e)
                connection.close()

                if self.wait(self.settings.reconnect_delay):
                    return None
                continue

            with self._lock:
                if self.shutdown.is_set():
                    session = None
                else:
                    previous = self._session
                    self._version += 1
                    session = Session(connection, subscription, since, self._version)
                    self._session = session
                    self._set_state(State.SUBSCRIBED)

            if session is None:
                subscription.close()
                connection.close()
                return None

            if previous is not None:
                previous.close()

            return session


    def invalidate(self, session, reason=None):
        """ Retire *session* after a transport failure. Nothing happens if
            *session* has already been replaced or retired, so concurrent
            reports of the same failure tear the session down only once.
            Returns True if this call did the teardown.
        """

        with self._lock:
            if session is None or session is not self._session:
                return False

            self._session = None
            session.invalidate()

            if self.shutdown.is_set():
                pass
            else:
                self._set_state(State.RECONNECTING)

        logger.info('tearing down session %d: %s', session.version, reason)
        session.close()
        return True


    def close(self):
        """ Release the current session, if any, for shutdown.
        """

        with self._lock:
            session = self._session
            self._session = None
            self._set_state(State.SHUTTING_DOWN)

        if session is not None:
            session.close()


    def _set_state(self, state):

        with self._lock:
            if self.state is State.SHUTTING_DOWN:
                return

            if self.state is not state:
                logger.debug('%s: %s -> %s', self.endpoint, self.state.name, state.name)
                self.state = state


    def activate(self, session=None):
        """ Mark the manager ACTIVE once the loops for *session* are
            running. Returns False, changing nothing, if *session* has
            already been retired.
        """

        with self._lock:
            if session is not None and session is not self._session:
                return False

            self._set_state(State.ACTIVE)
            return True


# end of class ConnectionManager


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
