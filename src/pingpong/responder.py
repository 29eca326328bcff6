""" The subscriber's loop: answer every ping addressed to this identity
    with exactly one pong.
"""

import logging

from .identity import SigningError
from .protocol import factory
from .protocol.fields import PING
from .transport import TransportClosed, TransportError, is_transport_failure

logger = logging.getLogger(__name__)


class ResponderLoop:
    """ Answer pings arriving on the current session's subscription. No
        deduplication is attempted: a ping delivered twice is answered
        twice.
    """

    def __init__(self, identity, manager):
        self.identity = identity
        self.manager = manager
        self.answered = 0


    def filter(self, since):
        return factory.inbox(self.identity.public, since)


    def respond(self, session, event):
        """ Send the pong for one *event*. Returns a transport failure if
            the send found the connection dead, otherwise None.
        """

        logger.info('received ping from %s', event.pubkey)

        pong = factory.response(self.identity.public, event)

        try:
            self.identity.sign(pong)
        except SigningError as e:
            logger.info('failed to sign pong event: %s', e)
            return None

        try:
            session.publish(pong)
        except (TransportError, OSError) as e:
            logger.info('failed to publish pong event: %s', e)

            if is_transport_failure(e):
                self.manager.invalidate(session, e)
                return e

            return None

        logger.info('sent pong to %s', event.pubkey)
        self.answered += 1
        return None


    def run(self, session):
        """ Process pings until the stream ends or a send fails with a
            transport failure. Returns the failure, or None on shutdown.
        """

        for event in session.subscription:

            if event.content == PING:
                pass
            else:
                continue

            failure = self.respond(session, event)

            if failure is not None:
                return failure

        if self.manager.shutdown.is_set():
            return None

        reason = session.subscription.reason
        if reason is None:
            reason = TransportClosed('event stream ended')

        logger.info('Event channel closed, reconnecting...')
        self.manager.invalidate(session, reason)
        return reason


# end of class ResponderLoop


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
