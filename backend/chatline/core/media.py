# chatline/core/media.py

import asyncio
import mimetypes
import os
import re
import secrets
import threading
import time
from typing import BinaryIO, Iterable, Optional

from chatline.core.entities import StorageRef
from chatline.core.errors import InvalidMediaType, PayloadTooLarge, StorageWriteFailed
from chatline.utils.logger import logger

DEFAULT_ALLOWED_TYPES = frozenset({"image/jpeg", "image/png", "video/mp4", "audio/mpeg"})
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
CHUNK_SIZE = 64 * 1024

_EXTENSION_RE = re.compile(r"\.[a-z0-9]{1,10}")


class _WriteCancelled(Exception):
    pass


def normalize_content_type(content_type: Optional[str]) -> str:
    """'Image/PNG; charset=binary' -> 'image/png'"""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def infer_extension(content_type: str, declared_filename: Optional[str]) -> str:
    """
    Pick the extension for a stored file.

    The client's extension is kept only when it is one the content type is
    known by (so `photo.JPEG` stays `.jpeg`); anything else falls back to
    the canonical extension for the type.
    """
    known = {ext.lower() for ext in mimetypes.guess_all_extensions(content_type)}
    if declared_filename:
        _, ext = os.path.splitext(os.path.basename(declared_filename))
        ext = ext.lower()
        if _EXTENSION_RE.fullmatch(ext) and ext in known:
            return ext
    return mimetypes.guess_extension(content_type) or ""


class MediaIntake:
    """Accepts one attachment at a time and stores it on the content volume."""

    def __init__(
        self,
        root: str,
        allowed_types: Iterable[str] = DEFAULT_ALLOWED_TYPES,
        max_bytes: int = DEFAULT_MAX_BYTES,
        url_prefix: str = "/uploads",
    ):
        self.root = os.path.abspath(root)
        self.allowed_types = frozenset(normalize_content_type(t) for t in allowed_types)
        self.max_bytes = max_bytes
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def is_allowed(self, content_type: Optional[str]) -> bool:
        return normalize_content_type(content_type) in self.allowed_types

    async def accept(
        self,
        content_type: Optional[str],
        stream: BinaryIO,
        declared_filename: Optional[str] = None,
        max_bytes: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> StorageRef:
        normalized = normalize_content_type(content_type)
        if normalized not in self.allowed_types:
            logger.warning(
                "Rejected attachment type",
                extra={"content_type": content_type, "declared_filename": declared_filename},
            )
            raise InvalidMediaType(content_type)

        limit = self.max_bytes if max_bytes is None else max_bytes
        cancelled = threading.Event()
        write = asyncio.ensure_future(
            asyncio.to_thread(self._write, normalized, stream, declared_filename, limit, cancelled)
        )
        try:
            return await asyncio.wait_for(asyncio.shield(write), timeout)
        except asyncio.CancelledError:
            self._abandon(write, cancelled)
            raise
        except asyncio.TimeoutError as exc:
            self._abandon(write, cancelled)
            logger.error("Attachment write timed out", extra={"timeout": timeout})
            raise StorageWriteFailed(f"Media write timed out after {timeout}s") from exc

    def discard(self, ref: StorageRef) -> None:
        """Remove a stored file; a file that is already gone is not an error."""
        try:
            os.remove(ref.path)
        except FileNotFoundError:
            return
        logger.info("Discarded attachment", extra={"stored_as": ref.filename})

    def _abandon(self, write: asyncio.Future, cancelled: threading.Event) -> None:
        # The writer may already be past its last cancel check; whatever it
        # finishes with is nobody's file.
        cancelled.set()
        write.add_done_callback(self._discard_late_write)

    def _discard_late_write(self, write: asyncio.Future) -> None:
        if write.cancelled() or write.exception() is not None:
            return
        self.discard(write.result())

    def _open_unique(self, extension: str) -> tuple[str, str, BinaryIO]:
        # Exclusive create: a name that already exists is never reused.
        while True:
            filename = f"{time.time_ns()}-{secrets.token_hex(4)}{extension}"
            path = os.path.join(self.root, filename)
            try:
                return filename, path, open(path, "xb")
            except FileExistsError:
                continue

    def _write(
        self,
        content_type: str,
        stream: BinaryIO,
        declared_filename: Optional[str],
        limit: int,
        cancelled: threading.Event,
    ) -> StorageRef:
        extension = infer_extension(content_type, declared_filename)
        try:
            filename, path, out = self._open_unique(extension)
        except OSError as exc:
            raise StorageWriteFailed(f"Could not create media file: {exc}") from exc

        size = 0
        try:
            with out:
                while True:
                    if cancelled.is_set():
                        raise _WriteCancelled()
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > limit:
                        raise PayloadTooLarge(limit)
                    out.write(chunk)
            if cancelled.is_set():
                raise _WriteCancelled()
        except PayloadTooLarge:
            self._remove_partial(path)
            logger.warning(
                "Rejected oversized attachment",
                extra={"max_bytes": limit, "declared_filename": declared_filename},
            )
            raise
        except _WriteCancelled:
            self._remove_partial(path)
            raise StorageWriteFailed("Media write cancelled")
        except OSError as exc:
            self._remove_partial(path)
            logger.error("Attachment write failed", extra={"stored_as": filename}, exc_info=True)
            raise StorageWriteFailed(f"Could not write media file: {exc}") from exc

        logger.info(
            "Stored attachment",
            extra={"stored_as": filename, "content_type": content_type, "size": size},
        )
        return StorageRef(
            filename=filename,
            path=path,
            url=f"{self.url_prefix}/{filename}",
            content_type=content_type,
            size=size,
        )

    @staticmethod
    def _remove_partial(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
