""" Python implementation of the pingpong relay liveness probes. A single
    publisher pings a list of subscribers through a third-party relay; each
    subscriber answers with a pong. Both sides ride out relay failures by
    reconnecting with bounded retries.
"""

# Utility components.

from . import json
from . import identity

# Submodules used by multiple other components.

from . import protocol
from . import transport
from . import config

# Primary public-facing interfaces.

from .connection import ConnectionManager, Session, State
from .dispatch import ProbeDispatcher
from .listener import ListenerLoop, Roster
from .responder import ResponderLoop
from .publisher import Publisher
from .subscriber import Subscriber

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
