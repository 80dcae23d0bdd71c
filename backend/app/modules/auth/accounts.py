"""
Account flow: email OTP signup, verification, password login, profile.

The OTP transport is injected as ``send_otp(email, code) -> bool`` so the flow
never touches SMTP directly.
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AccountError,
    AccountNotVerifiedError,
    AlreadyVerifiedError,
    EmailDeliveryError,
    EmailInUseError,
    InvalidCredentialsError,
    InvalidOtpError,
    OtpExpiredError,
    UserNotFoundError,
)
from app.core.logging_config import logger
from app.core.security import (
    create_access_token,
    generate_otp,
    get_password_hash,
    hash_otp,
    verify_otp,
    verify_password,
)
from app.models.user import User

OtpSender = Callable[[str, str], Awaitable[bool]]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    """User accounts backed by the users table"""

    def __init__(self, db: AsyncSession, send_otp: OtpSender):
        self.db = db
        self.send_otp = send_otp

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def request_otp(self, email: str, password: str) -> User:
        """
        Issue a fresh OTP, creating an unverified account on first use.

        An existing account keeps its password but returns to unverified
        until the new code is confirmed.
        """
        email = normalize_email(email)
        user = await self.get_by_email(email)

        if user is None:
            user = User(
                email=email,
                name="",
                hashed_password=get_password_hash(password),
                is_verified=False,
            )
            self.db.add(user)
            logger.info(f"[Accounts] Created unverified account for {email}")
        else:
            user.is_verified = False

        otp = generate_otp()
        user.otp_hash = hash_otp(otp)
        user.otp_expires_at = datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        await self.db.commit()

        sent = await self.send_otp(email, otp)
        if not sent:
            logger.log_auth_event("send_otp", success=False, user_email=email, reason="delivery failed")
            raise EmailDeliveryError(email)

        logger.log_auth_event("send_otp", success=True, user_email=email)
        return user

    def _check_otp(self, user: User, otp: str) -> None:
        if not verify_otp(otp, user.otp_hash):
            raise InvalidOtpError()
        if user.otp_expires_at is None or user.otp_expires_at < datetime.utcnow():
            raise OtpExpiredError()

    def _mark_verified(self, user: User) -> None:
        user.is_verified = True
        user.otp_hash = None
        user.otp_expires_at = None

    async def verify_and_register(self, name: str, email: str, otp: str) -> User:
        email = normalize_email(email)
        user = await self.get_by_email(email)
        if user is None:
            logger.log_auth_event("register", success=False, user_email=email, reason="unknown email")
            raise AccountError("User not found. Please request an OTP first.", code="USER_NOT_FOUND")
        if user.is_verified:
            raise AlreadyVerifiedError()

        try:
            self._check_otp(user, otp)
        except AccountError as e:
            logger.log_auth_event("register", success=False, user_email=email, reason=e.code)
            raise

        user.name = name.strip()
        self._mark_verified(user)
        await self.db.commit()

        logger.log_auth_event("register", success=True, user_email=email, user_id=str(user.id))
        return user

    async def verify_email(self, email: str, otp: str) -> bool:
        """Confirm an OTP. Returns True when the account was already verified."""
        email = normalize_email(email)
        user = await self.get_by_email(email)
        if user is None:
            raise AccountError("User not found", code="USER_NOT_FOUND")
        if user.is_verified:
            return True

        try:
            self._check_otp(user, otp)
        except AccountError as e:
            logger.log_auth_event("verify_email", success=False, user_email=email, reason=e.code)
            raise

        self._mark_verified(user)
        await self.db.commit()
        logger.log_auth_event("verify_email", success=True, user_email=email)
        return False

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """Check credentials and issue a bearer token"""
        email = normalize_email(email)
        user = await self.get_by_email(email)

        if user is None or not verify_password(password, user.hashed_password):
            logger.log_auth_event("login", success=False, user_email=email, reason="invalid credentials")
            raise InvalidCredentialsError()

        if not user.is_verified:
            logger.log_auth_event("login", success=False, user_email=email, reason="not verified")
            raise AccountNotVerifiedError(email)

        user.last_login = datetime.utcnow()
        await self.db.commit()

        token = create_access_token({"sub": str(user.id), "email": user.email})
        logger.log_auth_event("login", success=True, user_email=email, user_id=str(user.id))
        return user, token

    async def update_profile(
        self,
        user: User,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        if email is not None:
            email = normalize_email(email)
            if email != user.email:
                existing = await self.get_by_email(email)
                if existing is not None:
                    raise EmailInUseError(email)
                user.email = email
        if name is not None:
            user.name = name.strip()

        await self.db.commit()
        logger.info(f"[Accounts] Profile updated for user {user.id}")
        return user
