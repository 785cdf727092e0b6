from __future__ import annotations

import os
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

bearer = HTTPBearer(auto_error=False)


def _secret() -> str:
    s = os.getenv("JWT_SECRET", "")
    if not s:
        raise RuntimeError("JWT_SECRET is not set")
    return s


def _algo() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def decode_token(token: str) -> dict:
    return jwt.decode(token, _secret(), algorithms=[_algo()])


class IdentityProvider:
    """Supplies the principal id used as the remote partition key."""

    @property
    def identity_id(self) -> Optional[str]:
        raise NotImplementedError


class StaticIdentity(IdentityProvider):
    def __init__(self, identity_id: Optional[str]):
        self._identity_id = identity_id

    @property
    def identity_id(self) -> Optional[str]:
        return self._identity_id


class TokenIdentity(IdentityProvider):
    """Identity taken from the ``sub`` claim of a signed token."""

    def __init__(self, token: str):
        self._token = token

    @property
    def identity_id(self) -> Optional[str]:
        sub = decode_token(self._token).get("sub")
        return str(sub) if sub else None


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    - Prefer a signed token (Authorization: Bearer ...)
    - Fall back to X-User-Id for local tooling
    """
    if creds is not None and creds.scheme.lower() == "bearer":
        try:
            identity = TokenIdentity(creds.credentials).identity_id
        except JWTError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
        if not identity:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        return identity

    if x_user_id:
        return x_user_id

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing credentials")
