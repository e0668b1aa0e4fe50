"""Outbound send-client interface for chat platforms."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

SenderAction = Literal["mark_seen", "typing_on", "typing_off"]


@dataclass
class SendCommand:
    """
    A single Send API call: either a text message or a sender action.

    Exactly one of ``text`` and ``sender_action`` must be set.
    """

    recipient_id: str
    text: str | None = None
    sender_action: SenderAction | None = None
    messaging_type: str | None = None
    tag: str | None = None


@dataclass
class SendResult:
    recipient_id: str
    message_id: str | None = None


class SendClient(ABC):
    """
    Abstract platform client used by the outbound relay.

    Implementations perform exactly one request per call; retries are the
    caller's business.
    """

    name: str = "base"

    @abstractmethod
    async def send(self, command: SendCommand) -> SendResult:
        """
        Deliver a command to the platform.

        Raises:
            MessengerApiError: on a non-2xx answer.
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the client."""
        return None
