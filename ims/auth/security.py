from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt as _bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext

from ..config import settings
from ..models.models import User


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)


@dataclass
class AuthUser:
    """Claims carried by an access token. No DB lookup is made per request."""

    user_id: str
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    # Accounts imported from the previous system carry bcrypt hashes ($2a$/$2b$/$2y$)
    if hashed.startswith("$2a$") or hashed.startswith("$2b$") or hashed.startswith("$2y$"):
        pb = plain.encode("utf-8")
        if len(pb) > 72:
            pb = pb[:72]
        try:
            return _bcrypt.checkpw(pb, hashed.encode("utf-8"))
        except ValueError:
            return False
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def create_access_token(user: User) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": user.username,
        "userId": user.username,
        "username": user.username,
        "role": user.role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.jwt_ttl_seconds)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> AuthUser:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")
    payload = decode_token(creds.credentials)
    username = payload.get("username") or payload.get("sub")
    if not username:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")
    return AuthUser(
        user_id=str(payload.get("userId") or username),
        username=str(username),
        role=str(payload.get("role") or "user"),
    )


def require_roles(*allowed_roles: str):
    """
    Require the caller's role to be one of allowed_roles (OR logic).
    """
    def _dep(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in allowed_roles:
            if allowed_roles == ("admin",):
                raise HTTPException(status_code=403, detail="Admin permission required")
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _dep


require_admin = require_roles("admin")
