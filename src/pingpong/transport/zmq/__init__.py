"""ZeroMQ forwarding relay backend."""

from . import framing
from .client import Connection
