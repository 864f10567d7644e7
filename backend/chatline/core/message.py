# chatline/core/message.py

import asyncio
from typing import Optional, Protocol

from chatline.core.entities import Attachment, Message, MessageDraft, StorageRef
from chatline.core.errors import EmptyMessage, PersistenceFailed
from chatline.core.media import MediaIntake
from chatline.core.notifier import FanoutNotifier
from chatline.utils.logger import logger


class MessageStore(Protocol):
    def create(self, draft: MessageDraft) -> Message: ...


def _log_detached_write(write: asyncio.Future) -> None:
    """Report how a write finished after its request went away."""
    if write.cancelled():
        return
    exc = write.exception()
    if exc is not None:
        logger.error(
            "Message write failed after the request was cancelled",
            extra={"error_type": type(exc).__name__, "error_message": str(exc)},
        )
        return
    logger.info(
        "Message stored after the request was cancelled",
        extra={"message_id": write.result().id},
    )


class MessageIngest:
    """
    Validates, persists and announces a chat message.

    The message is durable once `send` returns; delivery to the receiver
    happens afterwards on the notifier and never changes the outcome.

    If the store rejects the write, an attachment stored for the message is
    removed again. If the store times out the write may still land, so the
    attachment is kept.
    """

    def __init__(
        self,
        store: MessageStore,
        media: MediaIntake,
        notifier: FanoutNotifier,
        store_timeout: Optional[float] = 10.0,
        media_timeout: Optional[float] = 30.0,
    ):
        self.store = store
        self.media = media
        self.notifier = notifier
        self.store_timeout = store_timeout
        self.media_timeout = media_timeout

    async def send(
        self,
        sender_id: str,
        receiver_id: str,
        body: Optional[str] = None,
        attachment: Optional[Attachment] = None,
        timeout: Optional[float] = None,
    ) -> Message:
        if not body and attachment is None:
            raise EmptyMessage()

        stored: Optional[StorageRef] = None
        if attachment is not None:
            stored = await self.media.accept(
                attachment.content_type,
                attachment.stream,
                attachment.filename,
                timeout=timeout if timeout is not None else self.media_timeout,
            )

        draft = MessageDraft(
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body or None,
            media_ref=stored.url if stored else None,
        )
        # Once the write has started, a cancelled request must not stop it.
        write = asyncio.ensure_future(
            self._persist_and_notify(
                draft, stored, timeout if timeout is not None else self.store_timeout
            )
        )
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            write.add_done_callback(_log_detached_write)
            raise

    async def _persist_and_notify(
        self,
        draft: MessageDraft,
        stored: Optional[StorageRef],
        timeout: Optional[float],
    ) -> Message:
        try:
            message = await asyncio.wait_for(asyncio.to_thread(self.store.create, draft), timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "Message store write timed out",
                extra={
                    "sender_id": draft.sender_id,
                    "receiver_id": draft.receiver_id,
                    "timeout": timeout,
                    "media_ref": draft.media_ref,
                },
            )
            raise PersistenceFailed() from exc
        except PersistenceFailed:
            if stored is not None:
                await asyncio.to_thread(self.media.discard, stored)
            raise

        self.notifier.notify(message)
        return message
