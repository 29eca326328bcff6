""" A class representation of a relay event, and of the filter used to
    select events from a relay subscription.
"""

import hashlib
import time as timemodule

from .. import json


class Event:
    """ The :class:`Event` provides a very thin encapsulation of what it
        means to be a message in a relay context. Probes and responses are
        both represented as events; they differ only in *content* and in
        who is named by the targeting tag.

        The fields are largely in the order in which they are represented
        in the canonical serialization: the *pubkey* of the sender, the
        *created_at* timestamp, the *kind*, the *tags*, and the *content*.
        The *id* and *sig* fields are filled in when the event is signed,
        see :func:`pingpong.identity.Identity.sign`.

        :ivar tags: A list of tags, each tag a list of strings.
        :ivar created_at: Integer UNIX epoch timestamp of event creation.
    """

    def __init__(self, kind, tags=None, content='', pubkey=None, created_at=None, id=None, sig=None):

        if created_at is None:
            created_at = int(timemodule.time())

        if tags is None:
            tags = list()

        self.kind = int(kind)
        self.tags = [list(tag) for tag in tags]
        self.content = content
        self.pubkey = pubkey
        self.created_at = int(created_at)
        self.id = id
        self.sig = sig


    def __repr__(self):
        return 'Event(%s from %s, tags=%r)' % (repr(self.content), self.pubkey, self.tags)


    def serialize(self):
        """ Return the canonical serialization of this event as bytes; the
            event id is the SHA-256 digest of these bytes.
        """

        if self.pubkey is None:
            raise RuntimeError('events must have a pubkey to be serialized')

        canonical = (0, self.pubkey, self.created_at, self.kind, self.tags, self.content)
        return json.dumps(canonical)


    def compute_id(self):
        digest = hashlib.sha256(self.serialize()).hexdigest()
        return digest


    def tag(self, name):
        """ Return the first value of the tag *name*, or None if the event
            has no such tag.
        """

        for tag in self.tags:
            if len(tag) > 1 and tag[0] == name:
                return tag[1]

        return None


    def tag_values(self, name):
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]


    def to_dict(self):

        if self.id is None or self.sig is None:
            raise RuntimeError('events must be signed to be put on the wire')

        event = dict()
        event['id'] = self.id
        event['pubkey'] = self.pubkey
        event['created_at'] = self.created_at
        event['kind'] = self.kind
        event['tags'] = self.tags
        event['content'] = self.content
        event['sig'] = self.sig
        return event


    @classmethod
    def from_dict(cls, event):
        """ Build an :class:`Event` from its decoded wire form. A ValueError
            is raised if the dictionary is not shaped like an event.
        """

        try:
            id = event['id']
            pubkey = event['pubkey']
            created_at = int(event['created_at'])
            kind = int(event['kind'])
            tags = event['tags']
            content = event['content']
            sig = event['sig']
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError('malformed event: ' + repr(event)) from e

        for field in (id, pubkey, content, sig):
            if isinstance(field, str):
                pass
            else:
                raise ValueError('malformed event: ' + repr(event))

        if isinstance(tags, list) and all(isinstance(tag, list) for tag in tags):
            pass
        else:
            raise ValueError('malformed event tags: ' + repr(tags))

        return cls(kind, tags, content, pubkey, created_at, id, sig)


# end of class Event



class Filter:
    """ A :class:`Filter` describes which events a subscription should
        receive: a set of *kinds*, a *since* lower bound on the creation
        time, and a dictionary of *tags* mapping a single-letter tag name
        to the values that tag must take. An event matches when every
        populated constraint is satisfied.
    """

    def __init__(self, kinds=None, since=None, tags=None):

        if kinds is None:
            kinds = ()

        if tags is None:
            tags = dict()

        self.kinds = tuple(int(kind) for kind in kinds)
        self.since = None if since is None else int(since)
        self.tags = dict()

        for name,values in tags.items():
            self.tags[name] = tuple(values)


    def __repr__(self):
        return 'Filter(%r)' % (self.to_dict())


    def to_dict(self):

        filter = dict()

        if self.kinds:
            filter['kinds'] = list(self.kinds)

        if self.since is not None:
            filter['since'] = self.since

        for name,values in self.tags.items():
            filter['#' + name] = list(values)

        return filter


    def matches(self, event):

        if self.kinds and event.kind not in self.kinds:
            return False

        if self.since is not None and event.created_at < self.since:
            return False

        for name,values in self.tags.items():
            present = event.tag_values(name)
            for value in present:
                if value in values:
                    break
            else:
                return False

        return True


# end of class Filter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
