from datetime import datetime, timedelta, timezone
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from grownet.authorization import Capability, authorize
from grownet.config import settings
from grownet.database import SessionLocal
from grownet.exceptions import Forbidden
from grownet.models.connection import Connection, ConnectionStatus
from grownet.models.user import User
from grownet.pairing import ordered_pair
from grownet.presence import PresenceRegistry, PushOutbox
from grownet.services.connections import ConnectionMatchEngine
from grownet.services.conversations import ConversationStore
from grownet.services.directory import UserDirectory
from grownet.services.notifications import NotificationSink


OUTBOX_KEY = "push_outbox"


def release_outbox(db: Session, committed: bool) -> None:
    """Deliver or drop the pushes queued on the session during a request."""
    outbox: PushOutbox | None = db.info.pop(OUTBOX_KEY, None)
    if outbox is None:
        return
    if committed:
        outbox.deliver()
    else:
        outbox.discard()


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        release_outbox(db, committed=False)
        raise
    else:
        release_outbox(db, committed=True)
    finally:
        db.close()


DbSession = Annotated[Session, Depends(get_db)]

security = HTTPBearer(auto_error=False)


def create_access_token(user: User) -> str:
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": datetime.now(timezone.utc)
        + timedelta(minutes=settings.access_token_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(user: User) -> str:
    payload = {
        "sub": str(user.id),
        "type": "refresh",
        "exp": datetime.now(timezone.utc)
        + timedelta(days=settings.refresh_token_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def user_from_access_token(token: str, db: Session) -> User | None:
    """Resolve an access token to its active user, or None if it is unusable."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.InvalidTokenError:
        return None

    if payload.get("type") == "refresh":
        return None

    user = db.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DbSession,
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    user = user_from_access_token(credentials.credentials, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return user


def require_capability(capability: Capability):
    def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        authorize(user, capability)
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
ConnectingUser = Annotated[User, Depends(require_capability(Capability.CONNECT))]
MessagingUser = Annotated[User, Depends(require_capability(Capability.MESSAGE))]
AdminUser = Annotated[User, Depends(require_capability(Capability.MANAGE_USERS))]


def get_presence(request: Request) -> PresenceRegistry:
    return request.app.state.presence


Presence = Annotated[PresenceRegistry, Depends(get_presence)]


def get_outbox(db: DbSession, presence: Presence) -> PushOutbox:
    """The request's push outbox, flushed by ``get_db`` once the commit lands."""
    outbox = db.info.get(OUTBOX_KEY)
    if outbox is None:
        outbox = db.info[OUTBOX_KEY] = PushOutbox(presence)
    return outbox


Outbox = Annotated[PushOutbox, Depends(get_outbox)]


def get_connection_engine(db: DbSession, outbox: Outbox) -> ConnectionMatchEngine:
    return ConnectionMatchEngine(
        db,
        users=UserDirectory(db),
        conversations=ConversationStore(db),
        notifications=NotificationSink(db, push=outbox),
        push=outbox,
    )


Engine = Annotated[ConnectionMatchEngine, Depends(get_connection_engine)]


def require_connection(
    target_user_id: int,
    current_user: User,
    db: Session,
) -> None:
    """Check for an accepted connection between two users.

    Parameters:
        target_user_id: The other user's ID.
        current_user: The authenticated user.
        db: Database session.

    Raises:
        Forbidden: If no accepted connection exists.
    """
    low, high = ordered_pair(current_user.id, target_user_id)
    connection = db.execute(
        select(Connection).where(
            Connection.status == ConnectionStatus.ACCEPTED,
            Connection.user_low_id == low,
            Connection.user_high_id == high,
        )
    ).scalar_one_or_none()
    if connection is None:
        raise Forbidden("You must be connected to message this user.")
