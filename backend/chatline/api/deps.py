# chatline/api/deps.py

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from chatline.core.message import MessageIngest
from chatline.core.notifier import FanoutNotifier
from chatline.core.registry import ConnectionRegistry
from chatline.core.user import get_user
from chatline.infra.database import get_db
from chatline.infra.message_store import SqlMessageStore
from chatline.models.user import User

USER_HEADER = "X-User-Id"


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller from the X-User-Id header.

    Session mechanics live in front of this service; whatever authenticates
    the request sets the header.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = get_user(db, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def get_ingest(request: Request) -> MessageIngest:
    return request.app.state.ingest


def get_store(request: Request) -> SqlMessageStore:
    return request.app.state.store


def get_notifier(request: Request) -> FanoutNotifier:
    return request.app.state.notifier


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry
