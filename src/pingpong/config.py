""" Configuration handling: retry and timing settings, the recipient list
    loaded by the publisher, and the parsing of command-line values.
"""

import logging
import os

from . import identity
from . import json

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """ Startup configuration is missing or malformed; the process cannot
        proceed.
    """


class Settings:
    """ Timing and retry parameters shared by both roles. Every value has
        a default, can be passed as a keyword argument, and can otherwise be
        overridden by an environment variable: ``max_attempts`` is read from
        ``PINGPONG_MAX_ATTEMPTS``, and so on.

        :ivar max_attempts: Connection attempts in one fast-retry burst.
        :ivar initial_delay: Seconds; the backoff after attempt *n* is
            ``initial_delay * n**2``, capped at *max_delay*.
        :ivar max_delay: Seconds; ceiling for a single backoff.
        :ivar reconnect_delay: Seconds to pause after an exhausted burst or
            a transport failure before connecting again.
        :ivar connect_timeout: Seconds allowed for a single attempt.
        :ivar publish_timeout: Seconds to wait for the relay to acknowledge
            a published event.
    """

    defaults = dict(
        max_attempts = 10,
        initial_delay = 1.0,
        max_delay = 30.0,
        reconnect_delay = 5.0,
        connect_timeout = 10.0,
        publish_timeout = 7.0,
    )

    def __init__(self, environ=None, **kwargs):

        if environ is None:
            environ = os.environ

        for name,default in self.defaults.items():
            try:
                value = kwargs.pop(name)
            except KeyError:
                variable = 'PINGPONG_' + name.upper()
                value = environ.get(variable, default)

            value = _coerce(name, value, type(default))
            setattr(self, name, value)

        if kwargs:
            raise TypeError('unknown settings: ' + ', '.join(sorted(kwargs)))


    def __repr__(self):
        values = ['%s=%r' % (name, getattr(self, name)) for name in self.defaults]
        return 'Settings(' + ', '.join(values) + ')'


    def backoff(self, attempt):
        """ Return the delay in seconds after failed connection attempt
            number *attempt*, counting from one.
        """

        delay = self.initial_delay * attempt * attempt
        return min(delay, self.max_delay)


# end of class Settings



def _coerce(name, value, kind):

    try:
        value = kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError('invalid value for %s: %r' % (name, value))

    if value < 0 or (kind is int and value == 0):
        raise ConfigurationError('invalid value for %s: %r' % (name, value))

    return value



def parse_interval(text):
    """ Return the probe interval, in seconds, described by *text*. The
        interval must be a positive number.
    """

    try:
        interval = float(text)
    except (TypeError, ValueError):
        raise ConfigurationError('invalid interval: %r' % (text))

    if interval <= 0 or interval != interval or interval == float('inf'):
        raise ConfigurationError('invalid interval: %r' % (text))

    return interval



def load_secret(text):
    """ Return an :class:`pingpong.identity.Identity` for a secret key
        given either as 64 hex digits or as a bech32 ``nsec`` string.
    """

    text = text.strip()

    try:
        if text.startswith('nsec1'):
            text = identity.decode_identifier(text, prefix='nsec')
        return identity.Identity(text)
    except ValueError as e:
        raise ConfigurationError('invalid secret key: ' + str(e))



def load_targets(filename):
    """ Load the recipient list from *filename*, a JSON array of ``npub``
        strings, and return a tuple of hex public keys. Entries that cannot
        be decoded are skipped; duplicates are dropped, first one wins.
    """

    try:
        with open(filename, 'rb') as contents:
            raw = contents.read()
    except OSError as e:
        raise ConfigurationError('failed to read public keys file: ' + str(e))

    try:
        encoded = json.loads(raw)
    except json.DecodeError as e:
        raise ConfigurationError('failed to parse public keys: ' + str(e))

    if isinstance(encoded, list):
        pass
    else:
        raise ConfigurationError('public keys file must contain a JSON array')

    targets = list()

    for npub in encoded:
        if isinstance(npub, str):
            pass
        else:
            logger.warning('failed to decode npub key %r: not a string', npub)
            continue

        try:
            target = identity.decode_identifier(npub)
        except ValueError as e:
            logger.warning('failed to decode npub key %s: %s', npub, e)
            continue

        if target in targets:
            continue

        targets.append(target)

    return tuple(targets)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
