# chatline/core/entities.py

from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Optional


@dataclass(frozen=True)
class MessageDraft:
    """A validated message that has not been written to the store yet."""

    sender_id: str
    receiver_id: str
    body: Optional[str] = None
    media_ref: Optional[str] = None


@dataclass(frozen=True)
class Message:
    """A persisted chat message. Immutable once the store has returned it."""

    id: int
    sender_id: str
    receiver_id: str
    body: Optional[str]
    media_ref: Optional[str]
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "body": self.body,
            "mediaRef": self.media_ref,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Attachment:
    """
    An inbound file as handed over by the HTTP layer.

    `filename` comes from the client and is only trusted for extension
    inference.
    """

    content_type: Optional[str]
    stream: BinaryIO
    filename: Optional[str] = None


@dataclass(frozen=True)
class StorageRef:
    filename: str
    path: str
    url: str
    content_type: str
    size: int


@dataclass(frozen=True)
class ConversationSummary:
    user_id: str
    last_message: Message
    message_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "lastMessage": self.last_message.to_dict(),
            "messageCount": self.message_count,
        }
