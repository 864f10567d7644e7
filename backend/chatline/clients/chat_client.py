# chatline/clients/chat_client.py

import mimetypes
import os
from datetime import datetime, timezone
from typing import Optional

import requests

# =========================
# CONFIGURATION
# =========================

SERVER_URL = os.getenv("CHATLINE_SERVER_URL", "http://127.0.0.1:5000")
REQUEST_TIMEOUT = 30  # seconds


class ChatClientError(Exception):
    def __init__(self, status_code: int, error: str):
        self.status_code = status_code
        self.error = error
        super().__init__(f"{status_code}: {error}")


# =========================
# CHAT CLIENT
# =========================

class ChatClient:
    """Thin HTTP client for the chat backend, acting as one user."""

    def __init__(self, user_id: str, server_url: str = SERVER_URL, session: Optional[requests.Session] = None):
        self.user_id = user_id
        self.server_url = server_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers["X-User-Id"] = user_id

    def _url(self, path: str) -> str:
        return f"{self.server_url}{path}"

    @staticmethod
    def _unwrap(resp: requests.Response):
        if resp.status_code >= 400:
            try:
                error = resp.json().get("error", resp.text)
            except ValueError:
                error = resp.text
            raise ChatClientError(resp.status_code, error)
        return resp.json()

    def register(self, public_key: str, signature: str, timestamp: Optional[str] = None) -> dict:
        """
        Register this user's armored public key. `signature` must be a
        detached signature over "<user_id>|<timestamp>".
        """
        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        resp = self.session.post(
            self._url("/api/users/register"),
            json={
                "user_id": self.user_id,
                "public_key": public_key,
                "signature": signature,
                "timestamp": timestamp,
            },
            timeout=REQUEST_TIMEOUT,
        )
        return self._unwrap(resp)

    def list_users(self) -> list[dict]:
        resp = self.session.get(self._url("/api/users"), timeout=REQUEST_TIMEOUT)
        return self._unwrap(resp)

    def send(self, receiver_id: str, text: Optional[str] = None, media_path: Optional[str] = None) -> dict:
        """Send text and/or one file; returns the stored message."""
        url = self._url(f"/api/messages/send/{receiver_id}")

        if media_path is None:
            resp = self.session.post(url, json={"message": text}, timeout=REQUEST_TIMEOUT)
            return self._unwrap(resp)["data"]

        content_type = mimetypes.guess_type(media_path)[0] or "application/octet-stream"
        data = {"message": text} if text else {}
        with open(media_path, "rb") as fh:
            resp = self.session.post(
                url,
                data=data,
                files={"media": (os.path.basename(media_path), fh, content_type)},
                timeout=REQUEST_TIMEOUT,
            )
        return self._unwrap(resp)["data"]

    def history(self, other_id: str, limit: Optional[int] = None) -> list[dict]:
        params = {"limit": limit} if limit is not None else None
        resp = self.session.get(self._url(f"/api/messages/{other_id}"), params=params, timeout=REQUEST_TIMEOUT)
        return self._unwrap(resp)

    def conversations(self) -> list[dict]:
        resp = self.session.get(self._url("/api/messages/conversations"), timeout=REQUEST_TIMEOUT)
        return self._unwrap(resp)


# =========================
# DEMO USAGE
# =========================

if __name__ == "__main__":
    alice = ChatClient("alice")
    sent = alice.send("bob", "Hello Bob!")
    print(f"Sent message {sent['id']} at {sent['createdAt']}")
    for message in alice.history("bob"):
        print(f"{message['senderId']}: {message['body'] or message['mediaRef']}")
