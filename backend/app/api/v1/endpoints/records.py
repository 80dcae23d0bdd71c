"""
Portfolio record endpoints

One router per registry entry, all built by build_record_router:

    GET    /{slug}                         list caller's records
    POST   /{slug}                         create (multipart fields + files)
    PUT    /{slug}/{record_id}             update, optionally replacing files
    DELETE /{slug}/{record_id}             delete record and its blobs
    GET    /{slug}/download/{storage_ref}  download one attachment
"""

from typing import Any, Dict, List, Tuple
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.modules.auth.dependencies import get_current_owner_id
from app.modules.portfolio.registry import KINDS, KindSpec
from app.modules.portfolio.service import RecordService
from app.schemas.record import RecordDeleteResponse, RecordResponse
from app.services.blob_store import BlobStore, get_blob_store

FILES_FIELD = "files"


def split_form(form) -> Tuple[Dict[str, Any], List[UploadFile]]:
    """Separate plain form values from the ``files`` uploads"""
    data: Dict[str, Any] = {}
    uploads: List[UploadFile] = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key != FILES_FIELD:
                raise ValidationError(f"Unexpected file field '{key}'; upload files as '{FILES_FIELD}'", field=key)
            # Browsers send an empty part for an untouched file input
            if value.filename:
                uploads.append(value)
        elif key != FILES_FIELD:
            data[key] = value
    return data, uploads


def content_disposition(filename: str) -> str:
    """attachment header with a quoted ASCII name and an RFC 5987 UTF-8 name when needed"""
    cleaned = filename.replace("\r", "").replace("\n", "")
    fallback = cleaned.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fallback = fallback.replace("\\", "_").replace('"', "'")
    header = f'attachment; filename="{fallback}"'
    if fallback != cleaned:
        header += f"; filename*=UTF-8''{quote(cleaned)}"
    return header


def build_record_router(spec: KindSpec) -> APIRouter:
    """CRUD + download routes for one record kind"""
    router = APIRouter(prefix=f"/{spec.slug}", tags=[spec.label])

    def get_record_service(
        db: AsyncSession = Depends(get_db),
        blob_store: BlobStore = Depends(get_blob_store),
    ) -> RecordService:
        return RecordService.build(spec, db, blob_store)

    @router.get("", response_model=List[RecordResponse])
    async def list_records(
        owner_id: str = Depends(get_current_owner_id),
        service: RecordService = Depends(get_record_service),
    ):
        """List the caller's records of this kind"""
        records = await service.list_records(owner_id)
        return [RecordResponse.model_validate(record) for record in records]

    @router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
    async def create_record(
        request: Request,
        owner_id: str = Depends(get_current_owner_id),
        service: RecordService = Depends(get_record_service),
    ):
        """Create a record from multipart form fields and 1-5 files"""
        async with request.form() as form:
            data, uploads = split_form(form)
            record = await service.create_record(owner_id, data, uploads)
        return RecordResponse.model_validate(record)

    @router.put("/{record_id}", response_model=RecordResponse)
    async def update_record(
        record_id: str,
        request: Request,
        owner_id: str = Depends(get_current_owner_id),
        service: RecordService = Depends(get_record_service),
    ):
        """Replace a record's fields; new files replace all existing attachments"""
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                data = await request.json()
            except ValueError:
                raise ValidationError("Request body is not valid JSON")
            if not isinstance(data, dict):
                raise ValidationError("Request body must be a JSON object")
            record = await service.update_record(record_id, owner_id, data)
        else:
            async with request.form() as form:
                data, uploads = split_form(form)
                record = await service.update_record(record_id, owner_id, data, uploads)
        return RecordResponse.model_validate(record)

    @router.delete("/{record_id}", response_model=RecordDeleteResponse)
    async def delete_record(
        record_id: str,
        owner_id: str = Depends(get_current_owner_id),
        service: RecordService = Depends(get_record_service),
    ):
        """Delete a record and release its stored files"""
        await service.delete_record(record_id, owner_id)
        return RecordDeleteResponse(message=f"{spec.label} deleted successfully", id=record_id)

    @router.get("/download/{storage_ref}")
    async def download_attachment(
        storage_ref: str,
        owner_id: str = Depends(get_current_owner_id),
        service: RecordService = Depends(get_record_service),
    ):
        """Download one attachment of a record the caller owns"""
        download = await service.download(owner_id, storage_ref)
        return Response(
            content=download.content,
            media_type="application/octet-stream",
            headers={"Content-Disposition": content_disposition(download.filename)},
        )

    return router


record_routers: List[APIRouter] = [build_record_router(spec) for spec in KINDS]
