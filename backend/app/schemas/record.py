from pydantic import BaseModel, field_serializer
from typing import Any, Dict, List, Optional
from datetime import datetime


class AttachmentResponse(BaseModel):
    storage_ref: str
    original_name: str
    size_bytes: int
    content_type: Optional[str] = None

    class Config:
        from_attributes = True


class RecordResponse(BaseModel):
    id: str
    kind: str
    owner_id: str
    fields: Dict[str, Any]
    attachments: List[AttachmentResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_serializer('created_at', 'updated_at')
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    class Config:
        from_attributes = True


class RecordDeleteResponse(BaseModel):
    message: str
    id: str


class FieldRuleResponse(BaseModel):
    name: str
    type: str
    required: Any
    default: Any = None
    choices: Optional[List[str]] = None


class KindResponse(BaseModel):
    kind: str
    slug: str
    label: str
    requires_attachment: bool
    fields: List[FieldRuleResponse]
