from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.rate_limiter import limiter, OTP_RATE_LIMIT, LOGIN_RATE_LIMIT
from app.models.user import User
from app.modules.auth.accounts import AccountService
from app.modules.auth.dependencies import get_account_service, get_current_user
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

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/send-otp", response_model=MessageResponse)
@limiter.limit(OTP_RATE_LIMIT)
async def send_otp(
    request: Request,
    payload: SendOtpRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Email a one-time password, creating an unverified account on first use (rate limited: 3/min)"""
    await accounts.request_otp(payload.email, payload.password)
    return MessageResponse(message="OTP sent to email")


@router.post("/verify-and-register", response_model=MessageResponse)
async def verify_and_register(
    payload: VerifyAndRegisterRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Confirm the OTP and complete registration"""
    await accounts.verify_and_register(payload.name, payload.email, payload.otp)
    return MessageResponse(message="User registered successfully")


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    payload: VerifyEmailRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Confirm the OTP for an existing account"""
    already_verified = await accounts.verify_email(payload.email, payload.otp)
    if already_verified:
        return VerifyEmailResponse(message="Email already verified", already_verified=True)
    return VerifyEmailResponse(message="Email verified successfully")


@router.post("/login", response_model=Token)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    payload: UserLogin,
    accounts: AccountService = Depends(get_account_service),
):
    """Exchange email and password for a bearer token (rate limited: 5/min)"""
    _, token = await accounts.login(payload.email, payload.password)
    return Token(
        access_token=token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get the caller's profile"""
    return UserResponse.model_validate(current_user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    """Update the caller's name and/or email"""
    user = await accounts.update_profile(current_user, name=payload.name, email=payload.email)
    return UserResponse.model_validate(user)
