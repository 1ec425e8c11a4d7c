import logging

import jwt
from fastapi import APIRouter, Cookie, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from grownet.authorization import Role
from grownet.config import settings
from grownet.dependencies import (
    DbSession,
    create_access_token,
    create_refresh_token,
)
from grownet.exceptions import EmailAlreadyRegistered
from grownet.models.user import User
from grownet.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    RegisterRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE_NAME = "grownet_refresh_token"
# The refresh cookie is only sent back to the auth endpoints.
REFRESH_COOKIE_OPTIONS = {
    "httponly": True,
    "secure": True,
    "samesite": "none",
    "path": "/auth",
}


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _issue_tokens(user: User, response: Response) -> AccessTokenResponse:
    """Rotate the refresh cookie and return a fresh access token."""
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=create_refresh_token(user),
        max_age=settings.refresh_token_expire_days * 86400,
        **REFRESH_COOKIE_OPTIONS,
    )
    return AccessTokenResponse(access_token=create_access_token(user))


def _find_by_email(email: str, db: Session) -> User | None:
    return db.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()


def _user_from_refresh_token(token: str, db: Session) -> User | None:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.InvalidTokenError:
        return None
    if payload.get("type") != "refresh":
        return None
    return db.get(User, int(payload["sub"]))


@router.post("/login", response_model=AccessTokenResponse)
def login(request: LoginRequest, response: Response, db: DbSession):
    user = _find_by_email(request.email, db)
    if user is None or not user.is_active or not user.check_password(request.password):
        raise _unauthorized()
    return _issue_tokens(user, response)


@router.post(
    "/register",
    response_model=AccessTokenResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(request: RegisterRequest, response: Response, db: DbSession):
    """Open sign-up as a mentor or mentee. Admins come from the CLI."""
    if _find_by_email(request.email, db) is not None:
        raise EmailAlreadyRegistered()

    user = User(
        email=request.email.strip().lower(),
        name=request.name,
        role=Role(request.role),
        password_hash="",
    )
    user.set_password(request.password)
    db.add(user)
    db.flush()
    logger.info("Registered user %s as %s", user.id, user.role.value)
    return _issue_tokens(user, response)


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(
    response: Response,
    db: DbSession,
    grownet_refresh_token: str | None = Cookie(default=None),
):
    if grownet_refresh_token is None:
        raise _unauthorized()
    user = _user_from_refresh_token(grownet_refresh_token, db)
    if user is None or not user.is_active:
        raise _unauthorized()
    return _issue_tokens(user, response)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    response.delete_cookie(key=REFRESH_COOKIE_NAME, **REFRESH_COOKIE_OPTIONS)
