from pydantic import BaseModel, EmailStr, Field, field_serializer
from typing import Optional
from datetime import datetime


class SendOtpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class VerifyAndRegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10)


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MessageResponse(BaseModel):
    message: str


class VerifyEmailResponse(BaseModel):
    message: str
    already_verified: bool = False


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    is_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    @field_serializer('created_at', 'last_login')
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
