import threading

import pytest

import pingpong
from pingpong.config import Settings
from pingpong.connection import ConnectionManager, State
from pingpong.protocol import factory
from pingpong.transport import ConnectionExhausted, TransportClosed

import fakerelay


def settings(**kwargs):
    return Settings(environ={}, **kwargs)


def no_filter(since):
    return pingpong.protocol.Filter(since=since)


def test_connect_after_failures():
    """ Fail the first K attempts, succeed on the next; the delays between
        attempts follow the capped quadratic backoff.
    """

    relay = fakerelay.Relay()

    for failures in range(0, 10):
        waits = fakerelay.Waits()
        manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(failures), wait=waits)

        connection = manager.connect()
        assert connection.is_open

        expected = [min(1.0 * n * n, 30.0) for n in range(1, failures + 1)]
        assert waits.delays == expected


def test_connect_exhausted():
    relay = fakerelay.Relay()
    waits = fakerelay.Waits()
    manager = ConnectionManager('fake://relay', settings(max_attempts=4), connector=relay.connector(4), wait=waits)

    with pytest.raises(ConnectionExhausted) as caught:
        manager.connect()

    assert caught.value.exhausted == True
    assert caught.value.attempts == 4

    # No wait after the final attempt.
    assert waits.delays == [1.0, 4.0, 9.0]


def test_open_retries_forever():
    """ Three exhausted bursts, each followed by the reconnect delay, and
        a connection on the fourth burst.
    """

    relay = fakerelay.Relay()
    waits = fakerelay.Waits()
    config = settings(max_attempts=2, initial_delay=0.5, reconnect_delay=5)
    manager = ConnectionManager('fake://relay', config, connector=relay.connector(6), wait=waits)

    connection = manager.open()

    assert connection is not None
    assert waits.delays == [0.5, 5, 0.5, 5, 0.5, 5]
    assert waits.delays.count(5) == 3


def test_open_stops_on_shutdown():
    relay = fakerelay.Relay()
    shutdown = threading.Event()
    waits = fakerelay.Waits(shutdown)
    manager = ConnectionManager('fake://relay', settings(max_attempts=2), shutdown, relay.connector(1000), waits)

    shutdown.set()
    assert manager.open() is None


def test_subscribe_installs_session():
    relay = fakerelay.Relay()
    waits = fakerelay.Waits()
    manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(), wait=waits)

    assert manager.state is State.DISCONNECTED

    first = manager.subscribe(no_filter)
    assert manager.session is first
    assert manager.state is State.SUBSCRIBED
    assert first.subscription.filter.since == first.since
    assert first.valid

    second = manager.subscribe(no_filter)
    assert manager.session is second
    assert second.version == first.version + 1

    # Installing a new session retires the old one.
    assert not first.valid
    assert first.connection.closed


def test_subscribe_failure_reconnects():
    relay = fakerelay.Relay()
    waits = fakerelay.Waits()

    connections = list()
    connector = relay.connector()

    def flaky(endpoint):
        connection = connector(endpoint)
        if not connections:
            connection.closed = True
        connections.append(connection)
        return connection

    manager = ConnectionManager('fake://relay', settings(reconnect_delay=5), connector=flaky, wait=waits)
    session = manager.subscribe(no_filter)

    assert session.connection is connections[1]
    assert waits.delays == [5]


def test_invalidate_once():
    relay = fakerelay.Relay()
    manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(), wait=fakerelay.Waits())

    session = manager.subscribe(no_filter)
    manager.activate()

    assert manager.invalidate(session, TransportClosed('test')) == True
    assert manager.session is None
    assert manager.state is State.RECONNECTING
    assert session.connection.closed
    assert session.subscription.ended

    # A second report of the same failure is a no-op.
    assert manager.invalidate(session, TransportClosed('test')) == False

    # So is a report about a session that has since been replaced.
    replacement = manager.subscribe(no_filter)
    assert manager.invalidate(session) == False
    assert manager.session is replacement
    assert replacement.valid


def test_activate_after_teardown():
    """ A listener can retire the session between subscribe() and
        activate(); the manager must not then claim to be ACTIVE.
    """

    relay = fakerelay.Relay()
    manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(), wait=fakerelay.Waits())

    session = manager.subscribe(no_filter)
    manager.invalidate(session, TransportClosed('test'))

    assert manager.activate(session) == False
    assert manager.state is State.RECONNECTING

    replacement = manager.subscribe(no_filter)
    assert manager.activate(replacement) == True
    assert manager.state is State.ACTIVE


def test_state_changes_hold_the_lock():
    relay = fakerelay.Relay()
    manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(), wait=fakerelay.Waits())
    session = manager.subscribe(no_filter)

    finished = threading.Event()

    def activate():
        manager.activate(session)
        finished.set()

    with manager._lock:
        thread = threading.Thread(target=activate)
        thread.start()
        assert not finished.wait(0.2)
        assert manager.state is State.SUBSCRIBED

    thread.join(5)
    assert finished.is_set()
    assert manager.state is State.ACTIVE


def test_stale_session_refuses_to_publish():
    relay = fakerelay.Relay()
    manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(), wait=fakerelay.Waits())
    me = pingpong.identity.generate()

    session = manager.subscribe(no_filter)
    manager.invalidate(session)

    probe = me.sign(factory.probe(me.public, me.public))

    with pytest.raises(TransportClosed):
        session.publish(probe)

    assert relay.published == []


def test_close_is_terminal():
    relay = fakerelay.Relay()
    manager = ConnectionManager('fake://relay', settings(), connector=relay.connector(), wait=fakerelay.Waits())

    session = manager.subscribe(no_filter)
    manager.close()

    assert manager.session is None
    assert manager.state is State.SHUTTING_DOWN
    assert session.connection.closed

    # Nothing moves the manager out of SHUTTING_DOWN.
    manager.activate()
    assert manager.state is State.SHUTTING_DOWN


def test_subscribe_after_shutdown():
    relay = fakerelay.Relay()
    shutdown = threading.Event()
    manager = ConnectionManager('fake://relay', settings(), shutdown, relay.connector(), fakerelay.Waits(shutdown))

    shutdown.set()
    assert manager.subscribe(no_filter) is None
    assert relay.connections == []


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
