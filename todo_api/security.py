import os
import secrets
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import APIKeyHeader
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session

from logger import logger
from . import models
from .database import get_session
from .errors import AuthError

load_dotenv()

# Configuration loaded from environment variables with fallback to a generated key
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    SECRET_KEY = secrets.token_hex(32)
    logger.warning("No SECRET_KEY found in environment. Using a generated key; "
                   "issued tokens will not survive a restart.")

ALGORITHM = "HS256"
AUTH_ACCESS = "auth"
AUTH_HEADER = "x-auth"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
auth_header = APIKeyHeader(name=AUTH_HEADER, auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_auth_token(user_id: str, access: str = AUTH_ACCESS) -> str:
    to_encode = {
        "_id": user_id,
        "access": access,
        "iat": int(datetime.now(timezone.utc).timestamp()),
        # Two tokens issued within the same second must still differ
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_auth_token(token: str) -> Optional[dict]:
    """Return the token claims, or None if the signature does not check out."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def get_current_user(
        session: Session = Depends(get_session),
        token: Optional[str] = Depends(auth_header),
) -> models.User:
    # Import here to avoid circular imports
    from .repository import UserRepository

    if not token:
        raise AuthError()

    user = UserRepository(session).get_by_token(token)
    if user is None:
        logger.warning("Rejected request with an invalid auth token")
        raise AuthError()
    return user


def get_optional_user(
        session: Session = Depends(get_session),
        token: Optional[str] = Depends(auth_header),
) -> Optional[models.User]:
    """Resolve the caller when a token is supplied; anonymous otherwise.

    A supplied token that does not resolve is still rejected with 401.
    """
    if not token:
        return None
    return get_current_user(session=session, token=token)
