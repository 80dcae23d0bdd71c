# Pydantic schemas
from app.schemas.auth import (
    SendOtpRequest,
    VerifyAndRegisterRequest,
    VerifyEmailRequest,
    VerifyEmailResponse,
    UserLogin,
    Token,
    MessageResponse,
    UserResponse,
    ProfileUpdate,
)
from app.schemas.record import (
    AttachmentResponse,
    RecordResponse,
    RecordDeleteResponse,
    FieldRuleResponse,
    KindResponse,
)
