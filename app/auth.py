"""Bearer token identity resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, settings
from .errors import UnauthenticatedError

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    config: Settings = settings,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a signed token whose subject is ``user_id``."""

    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.access_token_expire_minutes)
    )
    claims = {"sub": str(user_id), "exp": expire}
    return jwt.encode(claims, config.jwt_secret_key, algorithm=config.jwt_algorithm)


def resolve_user_id(token: str, config: Settings = settings) -> str:
    """Return the user identifier carried by ``token``."""

    try:
        payload = jwt.decode(
            token, config.jwt_secret_key, algorithms=[config.jwt_algorithm]
        )
    except JWTError as exc:
        raise UnauthenticatedError() from exc

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise UnauthenticatedError("Token carries no subject")
    return user_id


async def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency resolving the calling user's identifier."""

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return resolve_user_id(credentials.credentials)
    except UnauthenticatedError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
