import os
from datetime import datetime, timedelta
from typing import Optional
import logging

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# Tokens are issued by the identity service; this service only verifies them.
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

http_bearer = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth")


def _secret_key() -> str:
    return os.getenv("JWT_SECRET", "change_me_in_production")


def create_access_token(owner_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": str(owner_id), "exp": expire}, _secret_key(), algorithm=ALGORITHM)


def verify_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, _secret_key(), algorithms=[ALGORITHM])
    except JWTError as err:
        logger.warning("JWT verification failed: %s", str(err))
        return None


def owner_id_from_token(token: str) -> Optional[int]:
    payload = verify_access_token(token)
    if not payload:
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> int:
    """FastAPI dependency: owner id from a valid Bearer token, else 401."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")

    owner_id = owner_id_from_token(credentials.credentials.strip())
    if owner_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return owner_id
