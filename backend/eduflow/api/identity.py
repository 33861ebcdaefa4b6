"""Identity adapter: turns the upstream provider's Bearer token into a Caller."""
from __future__ import annotations
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from eduflow.core import config
from eduflow.domain.identity import Caller

_bearer = HTTPBearer(auto_error=False)


# ------------------------------------------------------------------
# JWT helpers
# ------------------------------------------------------------------
def _decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")


def _caller_from_token(token: str) -> Caller:
    claims = _decode_token(token)
    if not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")
    try:
        return Caller.from_claims(claims)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid claims: {e}")


# ------------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------------
def get_current_caller(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Caller:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return _caller_from_token(credentials.credentials)


def optional_current_caller(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Optional[Caller]:
    """Anonymous requests get None; a present but invalid token is still rejected."""
    if not credentials:
        return None
    return _caller_from_token(credentials.credentials)
