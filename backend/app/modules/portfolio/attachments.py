"""
Attachment Coordinator

Moves uploaded files into the blob store and keeps blob lifecycle in step
with record lifecycle:

    persist_uploads      upload streams -> stored blobs -> RecordAttachment rows
    replace_attachments  swap a record's attachment list, hand back the old refs
    release_attachments  best-effort blob deletion, run after the record commit
    resolve_for_download look up an attachment on a record the caller owns

Writes in one batch are not transactional: if the fourth file is rejected for
size, the first three blobs are already stored and stay stored.
"""

import re
import secrets
import time
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence

from app.core.config import settings
from app.core.exceptions import (
    AttachmentNotFoundError,
    BlobNotFoundError,
    PayloadTooLargeError,
    TooManyFilesError,
    UnsupportedMediaTypeError,
)
from app.core.logging_config import logger
from app.models.record import PortfolioRecord, RecordAttachment
from app.services.blob_store import BlobStore


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_NAME_LENGTH = 100


def sanitize_filename(filename: Optional[str]) -> str:
    """Reduce a client-supplied file name to a safe single path component"""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name[-MAX_NAME_LENGTH:] or "file"


def generate_storage_ref(filename: Optional[str]) -> str:
    """Millisecond timestamp + random component + sanitized original name"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{sanitize_filename(filename)}"


def normalize_content_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


class AttachmentCoordinator:
    """
    Coordinates blob writes and deletes around record changes.

    Uploads are UploadFile-like objects: ``filename``, ``content_type`` and
    an async ``read(size)``.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        max_files: Optional[int] = None,
        max_file_size: Optional[int] = None,
        allowed_content_types: Optional[Iterable[str]] = None,
    ):
        self.blob_store = blob_store
        self.max_files = max_files if max_files is not None else settings.MAX_FILES_PER_REQUEST
        self.max_file_size = max_file_size if max_file_size is not None else settings.MAX_FILE_SIZE_BYTES
        allowed = allowed_content_types if allowed_content_types is not None else settings.ALLOWED_CONTENT_TYPES
        self.allowed_content_types = [normalize_content_type(t) for t in allowed]

    def check_batch(self, uploads: Sequence) -> None:
        """Reject a batch on count or declared content type before any bytes are read"""
        if len(uploads) > self.max_files:
            raise TooManyFilesError(len(uploads), self.max_files)
        for upload in uploads:
            content_type = normalize_content_type(upload.content_type)
            if content_type not in self.allowed_content_types:
                raise UnsupportedMediaTypeError(
                    upload.filename or "", upload.content_type, self.allowed_content_types
                )

    async def _read_limited(self, upload) -> bytes:
        content = await upload.read(self.max_file_size + 1)
        if len(content) > self.max_file_size:
            raise PayloadTooLargeError(upload.filename or "", self.max_file_size)
        return content

    async def persist_uploads(self, uploads: Sequence) -> List[RecordAttachment]:
        """
        Store every upload and return one attachment per file, in upload order.

        Raises TooManyFilesError, UnsupportedMediaTypeError, PayloadTooLargeError
        or BlobStoreError. Blobs written before a failure are left in place.
        """
        self.check_batch(uploads)

        attachments: List[RecordAttachment] = []
        for upload in uploads:
            try:
                content = await self._read_limited(upload)
                storage_ref = generate_storage_ref(upload.filename)
                content_type = normalize_content_type(upload.content_type)
                await self.blob_store.save(storage_ref, content, content_type)
            except Exception:
                if attachments:
                    logger.warning(
                        f"[Attachments] Upload batch failed after {len(attachments)} stored blob(s): "
                        f"{[a.storage_ref for a in attachments]}"
                    )
                raise

            attachments.append(RecordAttachment(
                position=len(attachments),
                storage_ref=storage_ref,
                original_name=upload.filename or storage_ref,
                size_bytes=len(content),
                content_type=content_type,
            ))
            logger.debug(f"[Attachments] Stored {upload.filename} as {storage_ref} ({len(content)} bytes)")

        return attachments

    @staticmethod
    def snapshot(record: PortfolioRecord) -> List[str]:
        """Storage refs currently referenced by a record"""
        return [a.storage_ref for a in record.attachments]

    def replace_attachments(
        self,
        record: PortfolioRecord,
        new_attachments: List[RecordAttachment],
    ) -> List[str]:
        """
        Swap the record's attachment list for a new one.

        Returns the superseded storage refs; pass them to release_attachments
        once the record change has been committed.
        """
        superseded = self.snapshot(record)
        for position, attachment in enumerate(new_attachments):
            attachment.position = position
        record.attachments = list(new_attachments)
        return superseded

    async def release_attachments(self, storage_refs: Sequence[str]) -> List[str]:
        """
        Best-effort deletion of blobs no longer referenced by any record.

        Never raises. Returns the refs that could not be deleted; an already
        absent blob is logged and counted as released.
        """
        failed: List[str] = []
        for storage_ref in storage_refs:
            try:
                await self.blob_store.delete(storage_ref)
            except BlobNotFoundError:
                logger.warning(f"[Attachments] Blob already absent during cleanup: {storage_ref}")
            except Exception as e:
                failed.append(storage_ref)
                logger.error(
                    f"[Attachments] Failed to delete blob {storage_ref}: {type(e).__name__}: {e}",
                    extra={"event_type": "blob_cleanup_failed", "storage_ref": storage_ref},
                )
        return failed

    @staticmethod
    def resolve_for_download(record: PortfolioRecord, storage_ref: str) -> RecordAttachment:
        """Find the attachment on the record, or raise AttachmentNotFoundError"""
        for attachment in record.attachments:
            if attachment.storage_ref == storage_ref:
                return attachment
        raise AttachmentNotFoundError(storage_ref)
