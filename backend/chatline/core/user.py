# chatline/core/user.py

from typing import Optional

from sqlalchemy.orm import Session

from chatline.models.user import User


def register_user(db: Session, user_id: str, public_key: str) -> User:
    """Register a new user, or rotate the public key of an existing one"""
    user = db.get(User, user_id)
    if user:
        user.public_key = public_key
    else:
        user = User(id=user_id, public_key=public_key)
        db.add(user)

    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def get_public_key(db: Session, user_id: str) -> Optional[str]:
    """Get user's armored public key by user_id"""
    user = db.get(User, user_id)
    if user is None:
        return None
    return user.public_key


def list_users(db: Session, exclude: Optional[str] = None) -> list[User]:
    query = db.query(User)
    if exclude is not None:
        query = query.filter(User.id != exclude)
    return query.order_by(User.id).all()
