"""Chat platform clients for messenger-gateway."""

from messenger_gateway.channels.base import SendClient, SendCommand, SendResult
from messenger_gateway.channels.messenger import MessengerClient

__all__ = ["MessengerClient", "SendClient", "SendCommand", "SendResult"]
