"""
Custom Exceptions for Faculty Portfolio
=======================================

Every error the API reports on purpose derives from PortfolioError. Each class
carries the HTTP status it maps to, so the API layer renders all of them with a
single exception handler.

Usage:
    from app.core.exceptions import RecordNotFoundError, ValidationError

    if record is None:
        raise RecordNotFoundError("award", record_id)

    if not fields.get("title"):
        raise ValidationError("title is required", field="title")
"""

from typing import Optional, Any, Dict, List


class PortfolioError(Exception):
    """Base exception for all portfolio errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(PortfolioError):
    """Caller did not present a bearer credential"""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, code="UNAUTHORIZED")


class InvalidTokenError(AuthenticationError):
    """Bearer credential is malformed or was not issued by us"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class TokenExpiredError(InvalidTokenError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token has expired")
        self.code = "TOKEN_EXPIRED"


class InvalidCredentialsError(AuthenticationError):
    """Email/password pair did not match"""

    def __init__(self):
        super().__init__("Invalid email or password")
        self.code = "INVALID_CREDENTIALS"


class AccountNotVerifiedError(PortfolioError):
    """Login attempted before the email address was verified"""

    status_code = 403

    def __init__(self, email: str):
        super().__init__(
            "Email address has not been verified",
            code="ACCOUNT_NOT_VERIFIED",
            details={"email": email}
        )


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(PortfolioError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class RecordNotFoundError(ResourceNotFoundError):
    """Record is absent or belongs to another owner"""

    def __init__(self, kind: str, record_id: str):
        super().__init__("Record", record_id)
        self.details["kind"] = kind


class AttachmentNotFoundError(ResourceNotFoundError):
    """Storage reference is unknown to the caller"""

    def __init__(self, storage_ref: str):
        super().__init__("Attachment", storage_ref)


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(PortfolioError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.field = field


class MissingAttachmentError(ValidationError):
    """Create request carried no files"""

    def __init__(self):
        super().__init__("At least one file must be uploaded", field="files")
        self.code = "MISSING_ATTACHMENT"


class TooManyFilesError(ValidationError):
    """More files than a single request may carry"""

    def __init__(self, count: int, limit: int):
        super().__init__(f"Too many files: {count} (max {limit})", field="files")
        self.code = "TOO_MANY_FILES"
        self.details.update({"count": count, "limit": limit})


class UnsupportedMediaTypeError(PortfolioError):
    """Uploaded file's content type is not on the allow-list"""

    status_code = 415

    def __init__(self, filename: str, content_type: Optional[str], allowed_types: List[str]):
        super().__init__(
            f"File type '{content_type}' not allowed for '{filename}'",
            code="UNSUPPORTED_MEDIA_TYPE",
            details={
                "filename": filename,
                "content_type": content_type,
                "allowed_types": allowed_types,
            }
        )


class PayloadTooLargeError(PortfolioError):
    """Uploaded file exceeds the per-file size limit"""

    status_code = 413

    def __init__(self, filename: str, max_bytes: int):
        super().__init__(
            f"File '{filename}' exceeds the maximum size of {max_bytes // 1024 // 1024}MB",
            code="PAYLOAD_TOO_LARGE",
            details={"filename": filename, "max_bytes": max_bytes}
        )


# ============================================
# Account / OTP Errors
# ============================================

class AccountError(PortfolioError):
    """Account flow rejected the request"""

    status_code = 400

    def __init__(self, message: str, code: str = "ACCOUNT_ERROR"):
        super().__init__(message, code=code)


class AlreadyVerifiedError(AccountError):
    """Account is already registered"""

    def __init__(self):
        super().__init__("User already verified", code="ALREADY_VERIFIED")


class InvalidOtpError(AccountError):
    """Submitted code does not match"""

    def __init__(self):
        super().__init__("Invalid OTP", code="INVALID_OTP")


class OtpExpiredError(AccountError):
    """Submitted code is past its expiry"""

    def __init__(self):
        super().__init__("OTP has expired", code="OTP_EXPIRED")


class EmailInUseError(AccountError):
    """Another account already owns the email address"""

    def __init__(self, email: str):
        super().__init__(f"Email '{email}' is already in use", code="EMAIL_IN_USE")


class EmailDeliveryError(PortfolioError):
    """OTP email could not be sent"""

    status_code = 503

    def __init__(self, email: str):
        super().__init__(
            "Failed to send verification email",
            code="EMAIL_DELIVERY_FAILED",
            details={"email": email}
        )


# ============================================
# Storage Errors
# ============================================

class StorageError(PortfolioError):
    """Storage operation failed"""

    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_ERROR")


class BlobStoreError(StorageError):
    """Blob write, read or delete failed"""

    def __init__(self, storage_ref: str, message: str = "Blob operation failed"):
        super().__init__(f"Blob store error for '{storage_ref}': {message}")
        self.code = "BLOB_STORE_ERROR"
        self.details["storage_ref"] = storage_ref


class BlobNotFoundError(BlobStoreError):
    """No blob stored under the reference"""

    def __init__(self, storage_ref: str):
        super().__init__(storage_ref, "blob not found")
        self.code = "BLOB_NOT_FOUND"


class RecordStoreError(StorageError):
    """Database operation on records failed"""

    def __init__(self, operation: str, message: str = ""):
        super().__init__(f"Record store {operation} failed" + (f": {message}" if message else ""))
        self.code = "RECORD_STORE_ERROR"
        self.details["operation"] = operation


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: PortfolioError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
