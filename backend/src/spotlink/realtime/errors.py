"""Errors reported back to the connection that triggered them."""

from __future__ import annotations


class RealtimeError(Exception):
    """Base error for client events that cannot be applied.

    ``event`` names the outbound event used to report the error to the
    originating connection.
    """

    default_message = "Request could not be processed"
    default_event = "error"

    def __init__(self, message: str | None = None, *, event: str | None = None) -> None:
        self.message = message or self.default_message
        self.event = event or self.default_event
        super().__init__(self.message)

    def to_payload(self) -> dict[str, str]:
        return {"message": self.message}


class InvalidConversation(RealtimeError):
    """Raised when no conversation id can be resolved from a join request."""

    default_message = "Conversation could not be resolved"
    default_event = "directError"


class NotInRoom(RealtimeError):
    """Raised when a connection sends to a room it has not joined."""

    default_message = "You are not in this chat room"


class MessageTooLong(RealtimeError):
    default_message = "Message is too long"
