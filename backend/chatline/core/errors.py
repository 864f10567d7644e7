# chatline/core/errors.py

"""
Error taxonomy for the message path.

Client-caused errors (EmptyMessage, InvalidMediaType, PayloadTooLarge) map
to 4xx responses, server-caused ones (StorageWriteFailed, PersistenceFailed)
to 5xx. DeliveryFailed never reaches a response: the notifier logs it.
"""


class ChatError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyMessage(ChatError):
    status_code = 400
    default_message = "Message or media must be provided"


class InvalidMediaType(ChatError):
    status_code = 415

    def __init__(self, content_type: str | None):
        self.content_type = content_type
        super().__init__(f"Invalid file type: {content_type or 'unknown'}")


class PayloadTooLarge(ChatError):
    status_code = 413

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        super().__init__(f"File exceeds maximum size of {max_bytes} bytes")


class StorageWriteFailed(ChatError):
    status_code = 500
    default_message = "Failed to store media"


class PersistenceFailed(ChatError):
    status_code = 500
    default_message = "Failed to send message"


class DeliveryFailed(ChatError):
    default_message = "Failed to deliver message"

    def __init__(self, user_id: str, reason: str | None = None):
        self.user_id = user_id
        self.reason = reason
        detail = f"{self.default_message} to {user_id}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)
