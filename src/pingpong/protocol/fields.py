"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

# Application event kind shared by probes and responses.
KIND = 1573

# Tag names: 's' carries the topic, 'p' the recipient public key.
TOPIC_TAG = "s"
TARGET_TAG = "p"

TOPIC = "pingpong"

PING = "ping"
PONG = "pong"

# NIP-01 relay message labels.
EVENT = "EVENT"
REQ = "REQ"
CLOSE = "CLOSE"
CLOSED = "CLOSED"
EOSE = "EOSE"
NOTICE = "NOTICE"
OK = "OK"
