# chatline/api/messages.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.datastructures import UploadFile

from chatline.api.deps import get_current_user, get_ingest, get_store
from chatline.core.entities import Attachment
from chatline.core.message import MessageIngest
from chatline.core.rate_limit import limiter, send_message_limit
from chatline.infra.message_store import SqlMessageStore
from chatline.models.user import User

router = APIRouter(prefix="/api/messages")


async def _send(
    ingest: MessageIngest,
    sender_id: str,
    receiver_id: str,
    body: Optional[str],
    media: Optional[UploadFile],
):
    attachment = None
    if media is not None:
        attachment = Attachment(
            content_type=media.content_type,
            stream=media.file,
            filename=media.filename,
        )
    message = await ingest.send(sender_id, receiver_id, body=body, attachment=attachment)
    return {
        "success": True,
        "message": "Message sent successfully",
        "data": message.to_dict(),
    }


@router.post("/send/{receiver_id}")
@limiter.limit(send_message_limit)
async def send_message(
    request: Request,
    receiver_id: str,
    current_user: User = Depends(get_current_user),
    ingest: MessageIngest = Depends(get_ingest),
):
    """
    Send a message to `receiver_id`.

    Accepts a multipart form (`message` text, `media` file) or a JSON body
    (`{"message": "..."}`). The response carries the stored message; it
    does not wait for delivery to the receiver.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        body = payload.get("message") if isinstance(payload, dict) else None
        if body is not None and not isinstance(body, str):
            raise HTTPException(status_code=400, detail="message must be a string")
        return await _send(ingest, current_user.id, receiver_id, body, None)

    async with request.form() as form:
        body = form.get("message")
        media = form.get("media")
        if not isinstance(body, str):
            body = None
        # Browsers send an empty part when no file was picked
        if not isinstance(media, UploadFile) or not media.filename:
            media = None
        return await _send(ingest, current_user.id, receiver_id, body, media)


@router.get("/conversations")
def list_conversations(
    current_user: User = Depends(get_current_user),
    store: SqlMessageStore = Depends(get_store),
):
    return [summary.to_dict() for summary in store.conversations(current_user.id)]


@router.get("/{other_id}")
def get_messages(
    other_id: str,
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    store: SqlMessageStore = Depends(get_store),
):
    """History between the caller and `other_id`, oldest first."""
    return [m.to_dict() for m in store.history(current_user.id, other_id, limit=limit)]
