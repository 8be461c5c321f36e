"""
FastAPI dependencies

Reusable dependencies injected into route handlers: DB session, current user
(bearer JWT), admin guard and client IP.
"""
from collections.abc import Generator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel import Session

from app.api.errors import forbidden, not_authenticated
from app.api.schemas import TokenPayload
from app.core import security
from app.core.config import settings
from app.core.db import engine
from app.models import User

# Missing credentials are reported by get_current_user, not by HTTPBearer
reusable_oauth2 = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Database session per request

    Yields:
        Session: closed automatically when the request finishes
    """
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]
TokenDep = Annotated[HTTPAuthorizationCredentials | None, Depends(reusable_oauth2)]


def _user_from_token(session: Session, token_str: str) -> User:
    try:
        payload = jwt.decode(
            token_str, settings.SECRET_KEY, algorithms=[security.ALGORITHM]
        )
        token_data = TokenPayload(**payload)
    except (InvalidTokenError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    if not token_data.sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    try:
        user_id = int(token_data.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_user(session: SessionDep, token: TokenDep) -> User:
    """
    Resolve the logged-in user from the bearer JWT

    Args:
        session: database session
        token: Authorization: Bearer <jwt>, None when the header is absent

    Returns:
        User: the authenticated user

    Raises:
        AppError: 401 "Not authenticated" without credentials
        HTTPException: 401 when the token is invalid or the user is gone
    """
    if token is None:
        raise not_authenticated()
    return _user_from_token(session, token.credentials)


def get_optional_user(session: SessionDep, token: TokenDep) -> User | None:
    """Same as get_current_user, but anonymous requests resolve to None"""
    if token is None:
        return None
    return _user_from_token(session, token.credentials)


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]


def get_current_admin(current_user: CurrentUser) -> User:
    if not current_user.is_admin:
        raise forbidden()
    return current_user


AdminUser = Annotated[User, Depends(get_current_admin)]


def get_client_ip(request: Request) -> str:
    """
    Client IP for rate limiting

    Prefers the first X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


ClientIp = Annotated[str, Depends(get_client_ip)]
