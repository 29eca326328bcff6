""" The publisher role: ping every target in turn, listen for the pongs,
    and keep doing so across relay failures.
"""

import logging

from . import identity as identitymodule
from .connection import ConnectionManager
from .dispatch import ProbeDispatcher
from .listener import ListenerLoop, Roster

logger = logging.getLogger(__name__)


class Publisher:
    """ Drive a :class:`pingpong.dispatch.ProbeDispatcher` and a
        :class:`pingpong.listener.ListenerLoop` against the relay at
        *endpoint*. *targets* is a sequence of hex public keys; *interval*
        is the pause in seconds after each probe. A fresh identity is
        generated unless one is provided.

        The remaining keyword arguments are passed through to the
        :class:`pingpong.connection.ConnectionManager`, or, for *random*,
        to the dispatcher.
    """

    def __init__(self, endpoint, targets, interval, identity=None, settings=None, random=None, shutdown=None, connector=None, wait=None):

        if identity is None:
            identity = identitymodule.generate()

        self.identity = identity
        self.manager = ConnectionManager(endpoint, settings, shutdown, connector, wait)
        self.shutdown = self.manager.shutdown
        self.roster = Roster()
        self.listener = ListenerLoop(identity, self.manager, self.roster)
        self.dispatcher = ProbeDispatcher(identity, targets, self.manager, interval, random, self.roster)
        self.listener_thread = None


    @property
    def state(self):
        return self.manager.state


    def run(self):
        """ Run until :func:`stop` is called. Transport failures, from
            either the dispatcher or the listener, retire the session and
            start over with a new connection after the reconnect delay.
        """

        logger.info('publisher public key: %s', self.identity.public)
        logger.info('decoded public keys: %s', list(self.dispatcher.targets))

        reconnect_delay = self.manager.settings.reconnect_delay

        try:
            while not self.shutdown.is_set():
                session = self.manager.subscribe(self.listener.filter)

                if session is None:
                    break

                self.listener_thread = self.listener.start(session)
                self.manager.activate(session)

                failure = self.dispatcher.run(session)

                if failure is None:
                    break

                self.listener_thread.join(1.0)

                logger.info('Attempting to reconnect...')
                if self.manager.wait(reconnect_delay):
                    break
        finally:
            self.manager.close()


    def stop(self):
        """ Request shutdown. Safe to call from any thread, including a
            signal handler in the main thread while :func:`run` executes in
            another.
        """

        self.shutdown.set()
        self.manager.close()


# end of class Publisher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
