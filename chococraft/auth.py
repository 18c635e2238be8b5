import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from . import config

logger = logging.getLogger(__name__)

# argon2 hashes new passwords; bcrypt hashes from older accounts still verify
pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")

# Security scheme for Bearer token; missing credentials are reported by us as 401
security = HTTPBearer(auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(user_id: int, is_admin: bool) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": str(user_id), "is_admin": bool(is_admin), "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> Dict:
    """Return the principal ``{"id", "is_admin"}`` carried by ``token``.

    Raises ``JWTError`` for a bad signature or an expired token and
    ``ValueError`` when the subject is missing or not a user id.
    """
    payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    subject = payload.get("sub")
    if subject is None:
        raise ValueError("token has no subject")
    return {"id": int(subject), "is_admin": bool(payload.get("is_admin", False))}


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied: no token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_access_token(credentials.credentials)
    except (JWTError, ValueError) as e:
        logger.warning("Rejected bearer token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_admin(current_user: Dict = Depends(get_current_user)) -> Dict:
    if not current_user.get("is_admin", False):
        logger.warning("Admin access denied for user %s", current_user.get("id"))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions. Admin access required.",
        )

    return current_user
