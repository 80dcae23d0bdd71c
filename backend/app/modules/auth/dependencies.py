from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, InvalidTokenError, UserNotFoundError
from app.core.logging_config import set_user_id
from app.core.security import decode_token
from app.models.user import User
from app.modules.auth.accounts import AccountService, OtpSender
from app.services.email_service import email_service

# auto_error=False so a missing header raises our own 401 error
security = HTTPBearer(auto_error=False)


async def get_current_owner_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Resolve the caller's identity from the bearer token.

    The token is trusted as-is: no database lookup is made.
    """
    if credentials is None:
        if request.headers.get("Authorization"):
            raise InvalidTokenError("Malformed authorization header")
        raise AuthenticationError("Access denied. No token provided.")

    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise InvalidTokenError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise InvalidTokenError("Invalid token payload")

    # Validate user_id is a valid UUID format
    try:
        uuid.UUID(str(user_id))
    except ValueError:
        raise InvalidTokenError("Invalid user ID format")

    set_user_id(str(user_id))
    request.state.user_id = str(user_id)
    return str(user_id)


def get_otp_sender() -> OtpSender:
    """OTP transport used by the account flow"""
    return email_service.send_otp_email


def get_account_service(
    db: AsyncSession = Depends(get_db),
    send_otp: OtpSender = Depends(get_otp_sender),
) -> AccountService:
    return AccountService(db, send_otp)


async def get_current_user(
    owner_id: str = Depends(get_current_owner_id),
    accounts: AccountService = Depends(get_account_service),
) -> User:
    """Load the authenticated user (profile endpoints)"""
    try:
        return await accounts.get_by_id(owner_id)
    except UserNotFoundError:
        raise InvalidTokenError("User not found")
