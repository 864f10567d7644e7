# chatline/core/notifier.py

import asyncio
from collections import deque
from typing import Any, Optional

from chatline.core.entities import Message
from chatline.core.errors import DeliveryFailed
from chatline.core.registry import ConnectionRegistry
from chatline.utils.logger import logger

MESSAGE_CREATED = "message.created"
PRESENCE = "presence"

# Server error close code, sent to a connection that stopped taking pushes
CLOSE_DELIVERY_FAILED = 1011


def envelope(event_type: str, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    return {"type": event_type, "data": data or {}}


class FanoutNotifier:
    """
    Pushes events to live connections after the fact.

    Each connected receiver gets its own FIFO queue and a single worker task
    draining it, so pushes to one receiver go out in the order they were
    queued while different receivers never wait on each other. Callers get
    no result back: delivery problems end up in the log and in
    `failed_count`, never in the request that caused them.

    Must be used from inside the running event loop.
    """

    def __init__(self, registry: ConnectionRegistry, push_timeout: float = 5.0):
        self.registry = registry
        self.push_timeout = push_timeout
        self.delivered_count = 0
        self.failed_count = 0
        self._queues: dict[str, deque] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def notify(self, message: Message) -> bool:
        """Queue `message` for its receiver. Returns False when the receiver is offline."""
        if self.registry.lookup(message.receiver_id) is None:
            logger.debug(
                "Receiver offline, message left for history fetch",
                extra={"message_id": message.id, "receiver_id": message.receiver_id},
            )
            return False
        self._enqueue(message.receiver_id, envelope(MESSAGE_CREATED, message.to_dict()))
        return True

    def send_to(self, user_id: str, payload: dict[str, Any]) -> bool:
        if self.registry.lookup(user_id) is None:
            return False
        self._enqueue(user_id, payload)
        return True

    def broadcast_presence(self) -> None:
        online = self.registry.online_users()
        payload = envelope(PRESENCE, {"online": online})
        for user_id in online:
            self._enqueue(user_id, payload)

    def pending(self, user_id: str) -> int:
        queue = self._queues.get(user_id)
        return len(queue) if queue else 0

    async def drain(self) -> None:
        """Wait until every queued push has been attempted."""
        # Cancelling drain() must not cancel the workers.
        while self._workers:
            await asyncio.wait(list(self._workers.values()))

    async def aclose(self, timeout: float = 5.0) -> None:
        try:
            await asyncio.wait_for(self.drain(), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Cancelling undelivered pushes on shutdown",
                extra={"receivers": len(self._workers)},
            )
            for task in list(self._workers.values()):
                task.cancel()
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
        self._queues.clear()

    def _enqueue(self, user_id: str, payload: dict[str, Any]) -> None:
        queue = self._queues.setdefault(user_id, deque())
        queue.append(payload)
        if user_id not in self._workers:
            loop = asyncio.get_running_loop()
            self._workers[user_id] = loop.create_task(self._drain_queue(user_id))

    async def _drain_queue(self, user_id: str) -> None:
        queue = self._queues[user_id]
        try:
            while queue:
                payload = queue.popleft()
                # Resolved per push: the receiver may have reconnected meanwhile.
                handle = self.registry.lookup(user_id)
                if handle is None:
                    logger.debug("Receiver went offline before push", extra={"receiver_id": user_id})
                    continue
                await self._push(user_id, handle, payload)
        finally:
            self._workers.pop(user_id, None)
            if not queue:
                self._queues.pop(user_id, None)

    async def _push(self, user_id: str, handle: Any, payload: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(handle.send_json(payload), self.push_timeout)
        except Exception as exc:
            self.failed_count += 1
            error = DeliveryFailed(user_id, f"{type(exc).__name__}: {exc}")
            logger.warning(
                error.message,
                extra={"receiver_id": user_id, "event_type": payload.get("type")},
            )
            # A handle that cannot be written to is dead; keep any newer one.
            if self.registry.unregister(user_id, handle):
                await self._close(user_id, handle)
                self.broadcast_presence()
            return
        self.delivered_count += 1

    async def _close(self, user_id: str, handle: Any) -> None:
        """Close a dropped handle so its client knows to reconnect."""
        try:
            await asyncio.wait_for(handle.close(code=CLOSE_DELIVERY_FAILED), self.push_timeout)
        except Exception as exc:
            logger.debug(
                "Dropped connection did not close cleanly",
                extra={"receiver_id": user_id, "error": f"{type(exc).__name__}: {exc}"},
            )
