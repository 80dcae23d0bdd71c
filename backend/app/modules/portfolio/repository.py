"""
Record Repository - owner-scoped CRUD over one record kind

Every lookup filters on (kind, id, owner_id). A record owned by someone else
and a record that does not exist produce the same RecordNotFoundError.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AttachmentNotFoundError, RecordNotFoundError, RecordStoreError
from app.core.logging_config import logger
from app.models.record import PortfolioRecord, RecordAttachment
from app.modules.portfolio.registry import KindSpec


class RecordRepository:
    """Persistence for the records of a single kind"""

    def __init__(self, db: AsyncSession, spec: KindSpec):
        self.db = db
        self.spec = spec

    @property
    def kind(self) -> str:
        return self.spec.kind

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[Records] {self.kind} {operation} commit failed: {e}")
            raise RecordStoreError(operation, type(e).__name__)

    async def list(self, owner_id: str) -> List[PortfolioRecord]:
        try:
            result = await self.db.execute(
                select(PortfolioRecord)
                .where(PortfolioRecord.kind == self.kind, PortfolioRecord.owner_id == owner_id)
                .order_by(PortfolioRecord.created_at)
            )
        except SQLAlchemyError as e:
            logger.error(f"[Records] {self.kind} list failed: {e}")
            raise RecordStoreError("list", type(e).__name__)
        return list(result.scalars().all())

    async def find(self, record_id: str, owner_id: str) -> Optional[PortfolioRecord]:
        try:
            result = await self.db.execute(
                select(PortfolioRecord).where(
                    PortfolioRecord.id == record_id,
                    PortfolioRecord.kind == self.kind,
                    PortfolioRecord.owner_id == owner_id,
                )
            )
        except SQLAlchemyError as e:
            logger.error(f"[Records] {self.kind} lookup failed: {e}")
            raise RecordStoreError("get", type(e).__name__)
        return result.scalar_one_or_none()

    async def get(self, record_id: str, owner_id: str) -> PortfolioRecord:
        record = await self.find(record_id, owner_id)
        if record is None:
            raise RecordNotFoundError(self.kind, record_id)
        return record

    async def create(
        self,
        owner_id: str,
        fields: Dict[str, Any],
        attachments: List[RecordAttachment],
    ) -> PortfolioRecord:
        record = PortfolioRecord(kind=self.kind, owner_id=owner_id, fields=fields)
        record.attachments = list(attachments)
        self.db.add(record)
        await self._commit("create")
        return record

    async def update(self, record: PortfolioRecord, fields: Dict[str, Any]) -> PortfolioRecord:
        """Persist new field values (and any attachment swap already applied to the record)"""
        record.fields = fields
        record.updated_at = datetime.utcnow()
        await self._commit("update")
        return record

    async def delete(self, record_id: str, owner_id: str) -> List[str]:
        """Delete the record and return the storage refs it referenced"""
        record = await self.get(record_id, owner_id)
        storage_refs = [a.storage_ref for a in record.attachments]
        await self.db.delete(record)
        await self._commit("delete")
        return storage_refs

    async def find_by_storage_ref(self, owner_id: str, storage_ref: str) -> PortfolioRecord:
        """Record of this kind, owned by owner_id, that references storage_ref"""
        try:
            result = await self.db.execute(
                select(PortfolioRecord)
                .join(RecordAttachment, RecordAttachment.record_id == PortfolioRecord.id)
                .where(
                    RecordAttachment.storage_ref == storage_ref,
                    PortfolioRecord.kind == self.kind,
                    PortfolioRecord.owner_id == owner_id,
                )
            )
        except SQLAlchemyError as e:
            logger.error(f"[Records] {self.kind} attachment lookup failed: {e}")
            raise RecordStoreError("get", type(e).__name__)
        record = result.scalar_one_or_none()
        if record is None:
            raise AttachmentNotFoundError(storage_ref)
        return record
