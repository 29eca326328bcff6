""" The subscriber role: answer pings for one identity, reconnecting to
    the relay whenever the transport fails.
"""

import logging

from .connection import ConnectionManager
from .responder import ResponderLoop

logger = logging.getLogger(__name__)


class Subscriber:
    """ Drive a :class:`pingpong.responder.ResponderLoop` for *identity*
        against the relay at *endpoint*. The keyword arguments are passed
        through to the :class:`pingpong.connection.ConnectionManager`.
    """

    def __init__(self, endpoint, identity, settings=None, shutdown=None, connector=None, wait=None):

        self.identity = identity
        self.manager = ConnectionManager(endpoint, settings, shutdown, connector, wait)
        self.shutdown = self.manager.shutdown
        self.responder = ResponderLoop(identity, self.manager)


    @property
    def state(self):
        return self.manager.state


    def run(self):
        """ Run until :func:`stop` is called.
        """

        reconnect_delay = self.manager.settings.reconnect_delay

        try:
            while not self.shutdown.is_set():
                session = self.manager.subscribe(self.responder.filter)

                if session is None:
                    break

                logger.info('subscriber public key: %s', self.identity.public)
                logger.info('Successfully subscribed, waiting for events...')
                self.manager.activate(session)

                failure = self.responder.run(session)

                if failure is None:
                    break

                logger.info('Attempting to reconnect...')
                if self.manager.wait(reconnect_delay):
                    break
        finally:
            self.manager.close()


    def stop(self):
        self.shutdown.set()
        self.manager.close()


# end of class Subscriber


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
