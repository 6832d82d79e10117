"""Transport layer for the h-workspace client.

Components:
- ws: single websocket connection with error mapping
- channel: reconnecting event channel over the websocket
- connector: open a channel and wait until it is live
"""

from .channel import Channel
from .connector import connect_channel
from .ws import connect_websocket

__all__ = [
    "Channel",
    "connect_channel",
    "connect_websocket",
]
