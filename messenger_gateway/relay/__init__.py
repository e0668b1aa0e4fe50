"""Outbound side: chunked text sends and presence indicators."""

from messenger_gateway.relay.outbound import ERROR_MESSAGE, OutboundRelay, chunk_text
from messenger_gateway.relay.presence import PresenceManager, PresenceState

__all__ = ["ERROR_MESSAGE", "OutboundRelay", "PresenceManager", "PresenceState", "chunk_text"]
