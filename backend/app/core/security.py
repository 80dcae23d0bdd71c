from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import hashlib
import hmac
import secrets

from app.core.config import settings
from app.core.exceptions import InvalidTokenError, TokenExpiredError


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def decode_token(token: str) -> Dict[str, Any]:
    """Decode JWT token, raising TokenExpiredError or InvalidTokenError"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError("Could not validate credentials")


def generate_otp(length: Optional[int] = None) -> str:
    """Numeric one-time password with no leading zero"""
    length = length or settings.OTP_LENGTH
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def hash_otp(otp: str) -> str:
    """SHA-256 digest stored in place of the code itself"""
    return hashlib.sha256(otp.encode('utf-8')).hexdigest()


def verify_otp(otp: str, otp_hash: Optional[str]) -> bool:
    """Constant-time comparison of a submitted code against the stored digest"""
    if not otp_hash:
        return False
    return hmac.compare_digest(hash_otp(otp.strip()), otp_hash)
