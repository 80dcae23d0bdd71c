"""
Record Service - one parametric service for every record kind

Order of work for each mutating call:
    1. validate fields against the kind's registry entry (no side effects)
    2. store uploads through the attachment coordinator
    3. commit the record change through the repository
    4. release superseded blobs (logged, never raised)
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BlobNotFoundError, AttachmentNotFoundError, MissingAttachmentError, RecordStoreError
from app.core.logging_config import logger
from app.models.record import PortfolioRecord, RecordAttachment
from app.modules.portfolio.attachments import AttachmentCoordinator
from app.modules.portfolio.registry import KindSpec
from app.modules.portfolio.repository import RecordRepository
from app.services.blob_store import BlobStore


@dataclass
class AttachmentDownload:
    """Bytes and metadata for one attachment download"""
    attachment: RecordAttachment
    content: bytes

    @property
    def filename(self) -> str:
        return self.attachment.original_name


class RecordService:
    """Create, list, update, delete and download records of one kind"""

    def __init__(self, spec: KindSpec, repository: RecordRepository, coordinator: AttachmentCoordinator):
        self.spec = spec
        self.repository = repository
        self.coordinator = coordinator

    @classmethod
    def build(cls, spec: KindSpec, db: AsyncSession, blob_store: BlobStore) -> "RecordService":
        return cls(spec, RecordRepository(db, spec), AttachmentCoordinator(blob_store))

    @property
    def kind(self) -> str:
        return self.spec.kind

    async def list_records(self, owner_id: str) -> List[PortfolioRecord]:
        return await self.repository.list(owner_id)

    async def create_record(
        self,
        owner_id: str,
        data: Mapping[str, Any],
        uploads: Sequence,
    ) -> PortfolioRecord:
        fields = self.spec.validate(data)
        if self.spec.requires_attachment and not uploads:
            raise MissingAttachmentError()
        self.coordinator.check_batch(uploads)

        attachments = await self.coordinator.persist_uploads(uploads)
        try:
            record = await self.repository.create(owner_id, fields, attachments)
        except RecordStoreError:
            await self.coordinator.release_attachments([a.storage_ref for a in attachments])
            raise

        logger.log_record_event(self.kind, "created", record.id, attachments=len(attachments))
        return record

    async def update_record(
        self,
        record_id: str,
        owner_id: str,
        data: Mapping[str, Any],
        uploads: Optional[Sequence] = None,
    ) -> PortfolioRecord:
        fields = self.spec.validate(data)
        uploads = uploads or []
        self.coordinator.check_batch(uploads)

        record = await self.repository.get(record_id, owner_id)

        superseded: List[str] = []
        new_refs: List[str] = []
        if uploads:
            attachments = await self.coordinator.persist_uploads(uploads)
            new_refs = [a.storage_ref for a in attachments]
            superseded = self.coordinator.replace_attachments(record, attachments)

        try:
            record = await self.repository.update(record, fields)
        except RecordStoreError:
            await self.coordinator.release_attachments(new_refs)
            raise

        # The update is committed; cleanup failures are logged only
        failed = await self.coordinator.release_attachments(superseded)
        logger.log_record_event(
            self.kind, "updated", record.id,
            attachments=len(new_refs), cleanup_failures=len(failed),
        )
        return record

    async def delete_record(self, record_id: str, owner_id: str) -> None:
        storage_refs = await self.repository.delete(record_id, owner_id)
        failed = await self.coordinator.release_attachments(storage_refs)
        logger.log_record_event(self.kind, "deleted", record_id, cleanup_failures=len(failed))

    async def download(self, owner_id: str, storage_ref: str) -> AttachmentDownload:
        record = await self.repository.find_by_storage_ref(owner_id, storage_ref)
        attachment = self.coordinator.resolve_for_download(record, storage_ref)
        try:
            content = await self.coordinator.blob_store.read(storage_ref)
        except BlobNotFoundError:
            logger.warning(f"[Records] {self.kind} attachment {storage_ref} is referenced but missing from the blob store")
            raise AttachmentNotFoundError(storage_ref)
        return AttachmentDownload(attachment=attachment, content=content)
