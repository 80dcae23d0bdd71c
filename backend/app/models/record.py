"""
Portfolio record models

A record is one entry of a given kind (award, patent, talk, ...). Kind-specific
attributes live in the ``fields`` JSON column and are shaped by the schema
registry; attachments are rows in their own table, ordered by upload position.
"""
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class PortfolioRecord(Base):
    """One portfolio entry owned by a single user"""
    __tablename__ = "portfolio_records"

    __table_args__ = (
        Index('ix_portfolio_records_owner_kind', 'owner_id', 'kind'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    kind = Column(String(50), nullable=False, index=True)
    owner_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    fields = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = relationship("User", back_populates="records")
    attachments = relationship(
        "RecordAttachment",
        back_populates="record",
        order_by="RecordAttachment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<PortfolioRecord {self.kind} {self.id}>"


class RecordAttachment(Base):
    """Metadata for one stored file; bytes live in the blob store under storage_ref"""
    __tablename__ = "record_attachments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    record_id = Column(GUID, ForeignKey("portfolio_records.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    storage_ref = Column(String(500), unique=True, index=True, nullable=False)
    original_name = Column(String(500), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    content_type = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    record = relationship("PortfolioRecord", back_populates="attachments")

    def __repr__(self):
        return f"<RecordAttachment {self.storage_ref}>"
