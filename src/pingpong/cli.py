""" Command-line entry points: ``pingpong-publisher``,
    ``pingpong-subscriber`` and ``pingpong-keygen``.
"""

import argparse
import logging
import signal
import sys
import threading

from . import config
from . import identity
from .publisher import Publisher
from .subscriber import Subscriber

logger = logging.getLogger(__name__)


def configure_logging(verbose=False):
    """ Progress is reported as plain lines on standard output.
    """

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter('%(message)s'))

    root = logging.getLogger('pingpong')
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False



def serve(role):
    """ Run *role* in a worker thread, leaving the main thread free to
        receive SIGINT/SIGTERM and request an orderly shutdown.
    """

    def interrupt(signum, frame):
        logger.info('shutting down...')
        role.stop()

    signal.signal(signal.SIGINT, interrupt)
    signal.signal(signal.SIGTERM, interrupt)

    worker = threading.Thread(target=role.run, name='role')
    worker.start()

    while worker.is_alive():
        worker.join(0.5)

    return 0



def _arguments(description):
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debugging detail.')
    return parser



def publisher_main(argv=None):

    parser = _arguments('Ping a list of subscribers through a relay and report who answers.')
    parser.add_argument('relay', help='Relay endpoint, for example wss://relay.example.com or tcp://host:port')
    parser.add_argument('keys', help='JSON file containing an array of npub public keys')
    parser.add_argument('interval', help='Seconds to wait after each ping')
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        interval = config.parse_interval(args.interval)
        settings = config.Settings()
        targets = config.load_targets(args.keys)
    except config.ConfigurationError as e:
        print(str(e))
        return 1

    publisher = Publisher(args.relay, targets, interval, settings=settings)
    return serve(publisher)



def subscriber_main(argv=None):

    parser = _arguments('Answer pings addressed to this key through a relay.')
    parser.add_argument('relay', help='Relay endpoint, for example wss://relay.example.com or tcp://host:port')
    parser.add_argument('secret', help='Secret key, as 64 hex digits or nsec')
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        settings = config.Settings()
        me = config.load_secret(args.secret)
    except config.ConfigurationError as e:
        print(str(e))
        return 1

    subscriber = Subscriber(args.relay, me, settings=settings)
    return serve(subscriber)



def keygen_main(argv=None):

    parser = argparse.ArgumentParser(description='Generate a key pair, or show the forms of an existing secret key.')
    parser.add_argument('secret', nargs='?', help='Existing secret key, as 64 hex digits or nsec')
    args = parser.parse_args(argv)

    if args.secret is None:
        me = identity.generate()
    else:
        try:
            me = config.load_secret(args.secret)
        except config.ConfigurationError as e:
            print(str(e))
            return 1

    secret = me.secret.hex()

    print('sk:', secret)
    print('nsec:', identity.encode_identifier(secret, 'nsec'))
    print('pk:', me.public)
    print('npub:', identity.encode_identifier(me.public, 'npub'))
    return 0



def publisher():
    sys.exit(publisher_main())


def subscriber():
    sys.exit(subscriber_main())


def keygen():
    sys.exit(keygen_main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
