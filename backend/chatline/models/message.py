from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text

from chatline.models.base import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        # A message carries text, media, or both
        CheckConstraint(
            "body IS NOT NULL OR media_ref IS NOT NULL",
            name="ck_messages_body_or_media",
        ),
        Index("ix_messages_pair_created", "sender_id", "receiver_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(String(100), nullable=False, index=True)
    receiver_id = Column(String(100), nullable=False, index=True)
    body = Column(Text, nullable=True)
    media_ref = Column(String(512), nullable=True)

    # Assigned by the store, naive UTC
    created_at = Column(DateTime, nullable=False, index=True)
