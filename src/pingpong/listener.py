""" The publisher's receiving half: consume pongs addressed to the
    publisher and keep track of which targets are alive.
"""

import logging
import threading
import time

from .protocol import factory
from .protocol.fields import PONG
from .transport import TransportClosed

logger = logging.getLogger(__name__)


class Correspondent:
    """ What is known about one responding identity: when it last answered,
        how many times it has answered, and the most recent round-trip time
        (None if the pong could not be matched to an outstanding probe).
    """

    def __init__(self, pubkey):
        self.pubkey = pubkey
        self.last_seen = None
        self.pongs = 0
        self.rtt = None


    def __repr__(self):
        return 'Correspondent(%s, pongs=%d, rtt=%r)' % (self.pubkey, self.pongs, self.rtt)


# end of class Correspondent



class Roster:
    """ Thread-safe record of outstanding probes and of the correspondents
        that have answered. The dispatcher calls :func:`expect` just before
        each probe is sent, and :func:`withdraw` if the send fails; the
        listener calls :func:`record` for each pong.
    """

    def __init__(self, clock=time.time):
        self.clock = clock
        self._lock = threading.Lock()
        self._outstanding = dict()
        self._correspondents = dict()


    def expect(self, target, when=None):
        """ Note a probe to *target* at *when*. Returns the time of the
            probe it supersedes, if one was still outstanding.
        """

        if when is None:
            when = self.clock()

        with self._lock:
            previous = self._outstanding.get(target)
            self._outstanding[target] = when

        return previous


    def withdraw(self, target, when, previous=None):
        """ Undo :func:`expect` for a probe that never went out, putting
            back the *previous* outstanding time. Nothing changes if a pong
            or a newer probe has touched *target* since.
        """

        with self._lock:
            if self._outstanding.get(target) != when:
                return

            if previous is None:
                del self._outstanding[target]
            else:
                self._outstanding[target] = previous


    def outstanding(self):
        with self._lock:
            return dict(self._outstanding)


    def record(self, pubkey, when=None):
        """ Note a pong from *pubkey*. The pong settles the outstanding
            probe for that same identity, and no other.
        """

        if when is None:
            when = self.clock()

        with self._lock:
            try:
                correspondent = self._correspondents[pubkey]
            except KeyError:
                correspondent = Correspondent(pubkey)
                self._correspondents[pubkey] = correspondent

            sent = self._outstanding.pop(pubkey, None)

            correspondent.last_seen = when
            correspondent.pongs += 1
            correspondent.rtt = None if sent is None else when - sent

            return correspondent


    def snapshot(self):
        """ Return a copy of the correspondents table, keyed by pubkey.
        """

        with self._lock:
            snapshot = dict()
            for pubkey,correspondent in self._correspondents.items():
                copy = Correspondent(pubkey)
                copy.last_seen = correspondent.last_seen
                copy.pongs = correspondent.pongs
                copy.rtt = correspondent.rtt
                snapshot[pubkey] = copy

            return snapshot


# end of class Roster



class ListenerLoop:
    """ Consume the current session's subscription, logging each pong and
        attributing it to the identity that signed it. If the stream ends
        while the process is not shutting down the session is invalidated,
        the same as a failed send would do.
    """

    def __init__(self, identity, manager, roster=None):

        if roster is None:
            roster = Roster()

        self.identity = identity
        self.manager = manager
        self.roster = roster


    def filter(self, since):
        return factory.inbox(self.identity.public, since)


    def handle(self, event):

        if event.content == PONG:
            pass
        else:
            return None

        correspondent = self.roster.record(event.pubkey)

        if correspondent.rtt is None:
            logger.info('got pong from %s', event.pubkey)
        else:
            logger.info('got pong from %s (%.3fs)', event.pubkey, correspondent.rtt)

        return correspondent


    def run(self, session):
        """ Process pongs until the stream ends. Returns the failure that
            ended the stream, or None on shutdown.
        """

        for event in session.subscription:
            self.handle(event)

        if self.manager.shutdown.is_set():
            return None

        reason = session.subscription.reason
        if reason is None:
            reason = TransportClosed('event stream ended')

        if self.manager.invalidate(session, reason):
            logger.info('pong stream closed, reconnecting...')

        return reason


    def start(self, session):
        """ Run :func:`run` for *session* in a background thread, which is
            returned.
        """

        name = 'listener:%d' % (session.version)
        thread = threading.Thread(target=self.run, args=(session,), name=name, daemon=True)
        thread.start()
        return thread


# end of class ListenerLoop


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
