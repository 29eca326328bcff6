import json

import pytest

import pingpong
from pingpong.protocol import factory
from pingpong.transport import TransportBrokenPipe, TransportClosed, TransportRejected, TransportTimeout
from pingpong.transport import websocket


class FakeSocket:
    """ Records every frame sent; *reply*, if set, is called with the
        decoded frame and may feed messages back into the connection.
    """

    def __init__(self):
        self.sent = list()
        self.reply = None
        self.error = None
        self.closed = False

    def send(self, text):
        if self.error is not None:
            raise self.error

        frame = json.loads(text)
        self.sent.append(frame)

        if self.reply is not None:
            self.reply(frame)

    def close(self):
        self.closed = True


# end of class FakeSocket



def connection(timeout=0.5):
    client = websocket.Connection('ws://relay.invalid', publish_timeout=timeout)
    client.websocket = FakeSocket()
    return client


def signed_probe(sender=None, target=None):
    if sender is None:
        sender = pingpong.identity.generate()
    if target is None:
        target = pingpong.identity.generate().public

    return sender.sign(factory.probe(sender.public, target))


def acknowledge(client, accepted, text=''):

    def reply(frame):
        if frame[0] == 'EVENT':
            client._incoming(json.dumps(['OK', frame[1]['id'], accepted, text]))

    return reply


def test_publish_accepted():
    client = connection()
    client.websocket.reply = acknowledge(client, True)

    probe = signed_probe()
    client.publish(probe)

    assert client.websocket.sent == [['EVENT', probe.to_dict()]]


def test_publish_rejected():
    client = connection()
    client.websocket.reply = acknowledge(client, False, 'blocked: not today')

    with pytest.raises(TransportRejected):
        client.publish(signed_probe())


def test_publish_timeout():
    client = connection(0.05)

    with pytest.raises(TransportTimeout):
        client.publish(signed_probe())

    # A timeout is not a transport failure.
    assert not pingpong.transport.is_transport_failure(TransportTimeout('x'))
    assert client.is_open


def test_publish_broken_pipe():
    client = connection()
    client.websocket.error = BrokenPipeError('broken pipe')

    with pytest.raises(TransportBrokenPipe) as caught:
        client.publish(signed_probe())

    assert pingpong.transport.is_transport_failure(caught.value)


def test_connection_lost_while_publishing():
    client = connection()

    def reply(frame):
        client._shutdown(TransportClosed('relay went away'))

    client.websocket.reply = reply

    with pytest.raises(TransportClosed):
        client.publish(signed_probe())

    assert not client.is_open

    with pytest.raises(TransportClosed):
        client.publish(signed_probe())


def test_subscribe_and_deliver():
    client = connection()
    me = pingpong.identity.generate()
    peer = pingpong.identity.generate()

    subscription = client.subscribe(factory.inbox(me.public, 0))
    label, sub_id, filter = client.websocket.sent[0]

    assert label == 'REQ'
    assert sub_id == subscription.id
    assert filter == {'kinds': [1573], 'since': 0, '#s': ['pingpong'], '#p': [me.public]}

    good = signed_probe(peer, me.public)

    forged = signed_probe(peer, me.public)
    forged.content = 'pong'

    elsewhere = signed_probe(peer)

    for event in (forged, elsewhere, good):
        client._incoming(json.dumps(['EVENT', sub_id, event.to_dict()]))

    client._incoming(json.dumps(['EVENT', 'unknown', good.to_dict()]))
    client._incoming('this is not json')
    client._incoming(json.dumps(['EOSE', sub_id]))
    client._incoming(json.dumps(['NOTICE', 'hello']))

    client.close()
    received = list(subscription)

    assert [event.id for event in received] == [good.id]
    assert isinstance(subscription.reason, TransportClosed)
    assert client.websocket.closed


def test_relay_closes_subscription():
    client = connection()
    subscription = client.subscribe(factory.inbox('a' * 64, 0))

    client._incoming(json.dumps(['CLOSED', subscription.id, 'error: shutting down']))

    assert subscription.ended
    assert isinstance(subscription.reason, TransportClosed)
    assert list(subscription) == []


def test_unsubscribe():
    client = connection()
    subscription = client.subscribe(factory.inbox('a' * 64, 0))

    subscription.close()

    assert client.websocket.sent[-1] == ['CLOSE', subscription.id]
    assert subscription.reason is None


def test_backend_selection():
    assert pingpong.transport.backend('wss://relay.example.com') is websocket.Connection
    assert pingpong.transport.backend('ws://localhost:7777') is websocket.Connection
    assert pingpong.transport.backend('tcp://localhost:7000') is pingpong.transport.zmq.Connection

    with pytest.raises(pingpong.transport.TransportConnectionError):
        pingpong.transport.backend('http://relay.example.com')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
