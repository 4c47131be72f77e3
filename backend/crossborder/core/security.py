from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from crossborder.core.config import settings
from crossborder.db.session import get_db
from crossborder.models import User

SECRET_KEY = settings.jwt_secret
ALGORITHM = settings.jwt_algorithm

# Hard guard: never allow the default secret in production-like envs
if settings.is_prod and SECRET_KEY in {"supersecret", "changeme", "secret", "", None}:
    raise RuntimeError(
        "Insecure JWT_SECRET configured in production environment. "
        "Set a strong random secret via the JWT_SECRET env var."
    )

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# auto_error=False: the session may also arrive as a cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def _http_401(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return pwd_context.hash(str(password))


def verify_password(password: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        # unknown or corrupt hash format
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def session_claims(user: User, roles: Iterable[str], selected_role: Optional[str]) -> Dict[str, Any]:
    return {
        "sub": user.email,
        "uid": user.id,
        "roles": list(roles),
        "selected_role": selected_role,
        "is_verified": bool(user.is_verified),
    }


def create_access_token(data: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    to_encode = dict(data)
    to_encode.setdefault("type", "access")
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    to_encode["exp"] = _utcnow() + timedelta(minutes=minutes)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_refresh_token(data: Dict[str, Any]) -> str:
    to_encode = {"sub": data.get("sub"), "uid": data.get("uid"), "selected_role": data.get("selected_role")}
    to_encode["type"] = "refresh"
    to_encode["exp"] = _utcnow() + timedelta(days=settings.refresh_token_expire_days)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_jwt(token: str) -> dict:
    """
    Decode JWT using settings.jwt_secret/jwt_algorithm.
    Raises 401 on any error.
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _http_401("Invalid or expired token")


def get_token_payload(
    bearer: Optional[str] = Depends(oauth2_scheme),
    session_cookie: Optional[str] = Cookie(default=None, alias=settings.session_cookie_name),
) -> dict:
    """
    Session token from `Authorization: Bearer` first, then the session cookie.
    """
    token = bearer or session_cookie
    if not token:
        raise _http_401("Authentication required")

    payload = decode_jwt(token)
    if payload.get("type", "access") != "access":
        raise _http_401("Invalid token type")
    return payload


def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> User:
    email = payload.get("sub")
    if not email:
        raise _http_401("Invalid token payload")

    user = db.query(User).filter(User.email == str(email).strip().lower()).first()
    if not user:
        raise _http_401("User not found")

    return user
