"""Convenience constructors for protocol messages."""

from __future__ import annotations

import time
from typing import Optional

from .fields import KIND, PING, PONG, TARGET_TAG, TOPIC, TOPIC_TAG
from .message import Event, Filter


def addressed(content: str, sender: str, recipient: str, created_at: Optional[int] = None) -> Event:
    """Create an unsigned event from *sender* addressed to *recipient*."""
    tags = [[TOPIC_TAG, TOPIC], [TARGET_TAG, recipient]]
    return Event(KIND, tags, content, pubkey=sender, created_at=created_at)


def probe(sender: str, target: str) -> Event:
    return addressed(PING, sender, target)


def response(sender: str, probe: Event) -> Event:
    """Create the pong answering *probe*, addressed back to its sender."""
    return addressed(PONG, sender, probe.pubkey)


def inbox(recipient: str, since: Optional[int] = None) -> Filter:
    """Filter for protocol events addressed to *recipient*, created no
    earlier than *since* (default: now)."""
    if since is None:
        since = int(time.time())
    tags = {TOPIC_TAG: (TOPIC,), TARGET_TAG: (recipient,)}
    return Filter(kinds=(KIND,), since=since, tags=tags)
