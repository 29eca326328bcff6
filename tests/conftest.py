import threading

import pytest
import zmq


minimum_port = 20139
maximum_port = 23679


@pytest.fixture(scope="session")
def zmq_relay():
    """ Run a ZeroMQ XSUB/XPUB forwarder on a background thread, for the
        duration of the test session, and yield its tcp:// endpoint. The
        XPUB side listens one port above the XSUB side.
    """

    context = zmq.Context.instance()
    xsub = context.socket(zmq.XSUB)
    xpub = context.socket(zmq.XPUB)

    endpoint = None

    for port in range(minimum_port, maximum_port):
        try:
            xsub.bind('tcp://127.0.0.1:%d' % (port))
        except zmq.ZMQError:
            continue

        try:
            xpub.bind('tcp://127.0.0.1:%d' % (port + 1))
        except zmq.ZMQError:
            xsub.unbind('tcp://127.0.0.1:%d' % (port))
            continue

        endpoint = 'tcp://127.0.0.1:%d' % (port)
        break

    if endpoint is None:
        pytest.skip('no free port pair for the relay')

    internal = 'inproc://conftest.zmq_relay:control'
    control_rx = context.socket(zmq.PAIR)
    control_rx.bind(internal)
    control_tx = context.socket(zmq.PAIR)
    control_tx.connect(internal)

    thread = threading.Thread(target=zmq.proxy_steerable, args=(xsub, xpub, None, control_rx))
    thread.daemon = True
    thread.start()

    yield endpoint

    control_tx.send(b'TERMINATE')
    thread.join(1)

    for socket in (xsub, xpub, control_rx, control_tx):
        socket.close(linger=0)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
