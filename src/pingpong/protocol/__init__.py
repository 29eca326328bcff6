from . import fields
from . import message
from . import factory

from .message import Event, Filter


"""
pingpong Protocol Layer
=======================

This package defines the transport-agnostic messages exchanged through a
relay: the event model, the subscription filter, and construction helpers
for probes and responses.

The protocol layer MUST NOT depend on any transport implementation
(e.g. websockets, ZeroMQ).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Role Drivers (publisher.py, subscriber.py)
    State machine: connect, subscribe, run, reconnect, shut down

    │
    ▼
Loops (dispatch.py, responder.py, listener.py)
    Build, sign and publish probes/responses; consume inbound events

    │
    ▼
Message Builder (factory.py)
    - probe(), response(), inbox()
    - Ensures consistent tags and kind
    - No transport awareness

    │
    ▼
Message Model (message.py)
    - Event
    - Filter
    Defines semantic meaning only

    │
    ▼
Field Vocabulary (fields.py)
    Canonical kind, tag names and content markers

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Session Layer (connection.py)
    Owns the one live connection + subscription, retries, reconnects

Transport Layer (transport/)
    Moves events
    - websocket relay (NIP-01)
    - ZeroMQ forwarding relay

---------------------------------------------------------------------

Design Principles
-----------------

1. Transport Agnostic
   Protocol must operate identically regardless of backend.

2. Layer Isolation
   Dependencies only flow downward:
       Roles -> Session -> Transport
   Never upward.

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
