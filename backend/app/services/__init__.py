from app.services.blob_store import BlobStore, LocalBlobStore, S3BlobStore, get_blob_store
from app.services.email_service import EmailService, email_service

__all__ = [
    # Attachment bytes
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "get_blob_store",
    # OTP delivery
    "EmailService",
    "email_service",
]
