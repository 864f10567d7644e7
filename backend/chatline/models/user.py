# chatline/models/user.py

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from chatline.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(String(100), primary_key=True, index=True)
    # ASCII-armored PGP public key
    public_key = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
