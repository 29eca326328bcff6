""" The publisher's sending half: one signed probe per target per round,
    in a freshly shuffled order, paced by a fixed interval.
"""

import logging
import random as randommodule
import time

from .identity import SigningError
from .protocol import factory
from .transport import TransportClosed, TransportError, is_transport_failure

logger = logging.getLogger(__name__)


class Round:
    """ The outcome of one dispatch round: the shuffled *order*, the
        targets actually *sent* a probe, the targets *skipped* after a
        transient error, and the *failure* that aborted the round, if any.
    """

    def __init__(self, order):
        self.order = order
        self.sent = list()
        self.skipped = list()
        self.failure = None
        self.cancelled = False


    @property
    def aborted(self):
        return self.failure is not None


    def __repr__(self):
        return 'Round(sent=%d, skipped=%d, failure=%r)' % (len(self.sent), len(self.skipped), self.failure)


# end of class Round



class ProbeDispatcher:
    """ Emit probes to every member of *targets*, a sequence of hex public
        keys, from *identity*, through sessions held by *manager*. After
        each successful send the dispatcher waits *interval* seconds.

        The *random* argument is the source used to shuffle the targets;
        it defaults to a :class:`random.Random` seeded from the clock. The
        optional *roster* is told about every probe sent, so that pongs can
        be matched to them.
    """

    def __init__(self, identity, targets, manager, interval, random=None, roster=None):

        if random is None:
            random = randommodule.Random(time.time())

        self.identity = identity
        self.targets = tuple(targets)
        self.manager = manager
        self.interval = interval
        self.random = random
        self.roster = roster


    def shuffle(self):
        """ Return a uniformly random permutation of the targets. The
            target set itself is never reordered.
        """

        order = list(self.targets)

        for i in range(len(order) - 1, 0, -1):
            j = self.random.randint(0, i)
            order[i], order[j] = order[j], order[i]

        return order


    def round(self, session):
        """ Send one probe to each target, in shuffled order, on *session*.
            A transport failure aborts the round and invalidates the
            session; any other error skips just that target.
        """

        result = Round(self.shuffle())
        logger.info('shuffled public keys: %s', result.order)

        for target in result.order:

            if self.manager.shutdown.is_set():
                result.cancelled = True
                break

            probe = factory.probe(self.identity.public, target)

            try:
                self.identity.sign(probe)
            except SigningError as e:
                logger.info('failed to sign event: %s', e)
                result.skipped.append(target)
                continue

            # Expect the pong before it can possibly arrive.
            if self.roster is not None:
                sent_at = self.roster.clock()
                previous = self.roster.expect(target, sent_at)

            try:
                session.publish(probe)
            except (TransportError, OSError) as e:
                logger.info('failed to publish event: %s', e)

                if self.roster is not None:
                    self.roster.withdraw(target, sent_at, previous)

                if is_transport_failure(e):
                    result.failure = e
                    self.manager.invalidate(session, e)
                    break

                result.skipped.append(target)
                continue

            logger.info('sent ping to %s', target)
            result.sent.append(target)

            if self.manager.wait(self.interval):
                result.cancelled = True
                break

        return result


    def run(self, session):
        """ Dispatch rounds on *session* until it fails or shutdown is
            requested. Returns the transport failure, or None on shutdown.
        """

        while not self.manager.shutdown.is_set():

            # The listener may have retired the session already.
            if not session.valid:
                return TransportClosed('session %d is no longer current' % (session.version))

            if self.targets:
                pass
            else:
                logger.info('no targets to ping')
                if self.manager.wait(self.interval):
                    break
                continue

            result = self.round(session)

            if result.aborted:
                return result.failure

        return None


# end of class ProbeDispatcher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
