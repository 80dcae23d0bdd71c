# Portfolio records: schema registry, attachment coordinator, repository, service

from app.modules.portfolio.registry import KINDS, REGISTRY, KindSpec, FieldSpec, FieldType, get_kind
from app.modules.portfolio.attachments import AttachmentCoordinator
from app.modules.portfolio.repository import RecordRepository
from app.modules.portfolio.service import RecordService, AttachmentDownload
