# chatline/api/users.py

import base64

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from chatline.api.deps import get_current_user
from chatline.core.user import get_public_key, list_users, register_user
from chatline.infra.database import get_db
from chatline.models.user import User
from chatline.utils.logger import logger

router = APIRouter(prefix="/api/users")


class RegisterUserSchema(BaseModel):
    user_id: str = Field(min_length=1, max_length=100)
    public_key: str
    signature: str
    timestamp: str


@router.post("/register")
def register_user_endpoint(payload: RegisterUserSchema, db: Session = Depends(get_db)):
    logger.info("Registration received", extra={"user_id": payload.user_id})

    # The signed data is user_id + timestamp to prevent reuse
    from chatline.core.security import signed_registration_payload, verify_pgp_signature

    signed_data = signed_registration_payload(payload.user_id, payload.timestamp)
    if not verify_pgp_signature(payload.public_key, payload.signature, signed_data):
        logger.warning("Identity signature rejected", extra={"user_id": payload.user_id})
        raise HTTPException(status_code=401, detail="Invalid identity signature")

    register_user(db, payload.user_id, payload.public_key)
    logger.info("User registered", extra={"user_id": payload.user_id})

    return {"status": "registered", "user_id": payload.user_id}


@router.get("")
def list_users_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Everyone the caller can talk to."""
    return [
        {"id": user.id, "createdAt": user.created_at.isoformat()}
        for user in list_users(db, exclude=current_user.id)
    ]


@router.get("/{user_id}/public-key")
def get_user_public_key(user_id: str, db: Session = Depends(get_db)):
    public_key = get_public_key(db, user_id)
    if public_key is None:
        raise HTTPException(status_code=404, detail="User not found")

    public_key_b64 = base64.b64encode(public_key.encode("utf-8")).decode()

    return {"public_key": public_key_b64}
