"""
Live view: broadcast hub and viewer connection handling.
"""

from .hub import BroadcastHub, ViewerConnection
from .server import LiveViewServer, encode_event, parse_control_message

__all__ = [
    "BroadcastHub",
    "ViewerConnection",
    "LiveViewServer",
    "encode_event",
    "parse_control_message",
]
