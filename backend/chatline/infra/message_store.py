# chatline/infra/message_store.py

import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from chatline.core.entities import ConversationSummary, Message, MessageDraft
from chatline.core.errors import PersistenceFailed
from chatline.infra.database import db_session
from chatline.models.message import Message as MessageRow
from chatline.utils.logger import logger


def _to_entity(row: MessageRow) -> Message:
    return Message(
        id=row.id,
        sender_id=row.sender_id,
        receiver_id=row.receiver_id,
        body=row.body,
        media_ref=row.media_ref,
        created_at=row.created_at,
    )


class SqlMessageStore:
    """
    Durable store for messages on top of SQLAlchemy.

    Ids come from the database; `created_at` is assigned here and never
    goes backwards within one process, even if the wall clock does.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory
        self._clock_lock = threading.Lock()
        self._last_created_at: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        with self._clock_lock:
            if self._last_created_at is not None and now < self._last_created_at:
                now = self._last_created_at
            self._last_created_at = now
        return now

    def create(self, draft: MessageDraft) -> Message:
        try:
            with db_session(self._session_factory) as session:
                row = MessageRow(
                    sender_id=draft.sender_id,
                    receiver_id=draft.receiver_id,
                    body=draft.body,
                    media_ref=draft.media_ref,
                    created_at=self._next_timestamp(),
                )
                session.add(row)
                session.flush()
                message = _to_entity(row)
        except SQLAlchemyError as exc:
            logger.error(
                "Message insert failed",
                extra={"sender_id": draft.sender_id, "receiver_id": draft.receiver_id},
                exc_info=True,
            )
            raise PersistenceFailed() from exc

        logger.info(
            "Message stored",
            extra={
                "message_id": message.id,
                "sender_id": message.sender_id,
                "receiver_id": message.receiver_id,
                "has_media": message.media_ref is not None,
            },
        )
        return message

    def get(self, message_id: int) -> Optional[Message]:
        with db_session(self._session_factory) as session:
            row = session.get(MessageRow, message_id)
            return _to_entity(row) if row is not None else None

    def history(self, user_id: str, other_id: str, limit: Optional[int] = None) -> list[Message]:
        """Messages exchanged between two users, oldest first."""
        with db_session(self._session_factory) as session:
            query = (
                session.query(MessageRow)
                .filter(
                    or_(
                        and_(MessageRow.sender_id == user_id, MessageRow.receiver_id == other_id),
                        and_(MessageRow.sender_id == other_id, MessageRow.receiver_id == user_id),
                    )
                )
                .order_by(MessageRow.created_at.desc(), MessageRow.id.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            rows = query.all()
            return [_to_entity(row) for row in reversed(rows)]

    def conversations(self, user_id: str) -> list[ConversationSummary]:
        """One summary per counterpart, most recently active first."""
        with db_session(self._session_factory) as session:
            rows = (
                session.query(MessageRow)
                .filter(or_(MessageRow.sender_id == user_id, MessageRow.receiver_id == user_id))
                .order_by(MessageRow.created_at.desc(), MessageRow.id.desc())
                .all()
            )
            counts: Counter = Counter()
            latest: dict[str, MessageRow] = {}
            for row in rows:
                other_id = row.receiver_id if row.sender_id == user_id else row.sender_id
                counts[other_id] += 1
                latest.setdefault(other_id, row)

            return [
                ConversationSummary(
                    user_id=other_id,
                    last_message=_to_entity(row),
                    message_count=counts[other_id],
                )
                for other_id, row in latest.items()
            ]
