"""ZMQ multipart framing for relay events.

Publish (PUB -> relay XSUB, relay XPUB -> SUB)
    topic, event_json

The topic is built from the event's topic and targeting tags, each followed
by a trailing dot so that one recipient's key can never be a prefix match
for another's.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from ... import json
from ...protocol.fields import TARGET_TAG, TOPIC_TAG
from ...protocol.message import Event, Filter


def topic(event: Event) -> bytes:
    parts = (event.tag(TOPIC_TAG) or "", event.tag(TARGET_TAG) or "")
    return ("%s.%s." % parts).encode()


def prefixes(filter: Filter) -> List[bytes]:
    """SUB socket prefixes wide enough to admit every event *filter* matches.

    The prefixes only narrow what the relay forwards; the filter itself is
    still applied to every delivered event.
    """

    topics = filter.tags.get(TOPIC_TAG)
    if not topics:
        return [b""]

    targets = filter.tags.get(TARGET_TAG)
    if not targets:
        return [("%s." % t).encode() for t in topics]

    return [("%s.%s." % (t, p)).encode() for t in topics for p in targets]


def to_frames(event: Event) -> Tuple[bytes, bytes]:
    return (topic(event), json.dumps(event.to_dict()))


def from_frames(parts: Sequence[bytes]) -> Event:
    if len(parts) < 2:
        raise ValueError("invalid relay message")

    try:
        data = json.loads(parts[1])
    except json.DecodeError as exc:
        raise ValueError("undecodable relay message") from exc

    return Event.from_dict(data)
