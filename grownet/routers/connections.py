from fastapi import APIRouter, Response, status

from grownet.dependencies import ConnectingUser, Engine
from grownet.models.connection import Connection
from grownet.schemas.connection import ConnectionRead, MatchRead
from grownet.schemas.user import UserSummary
from grownet.services.connections import ConnectionMatchEngine, MatchResult

router = APIRouter(prefix="/connections", tags=["connections"])


def _build_response(
    connection: Connection, current_user_id: int, engine: ConnectionMatchEngine
) -> dict:
    """Build a ConnectionRead-compatible dict with the other user's info.

    Parameters:
        connection: The connection record.
        current_user_id: The authenticated user's ID.
        engine: Engine whose user directory resolves the other party.

    Returns:
        Dict matching ConnectionRead schema.
    """
    other_user = engine.users.find_by_id(connection.other_party(current_user_id))
    return {
        "id": connection.id,
        "requester_id": connection.requester_id,
        "receiver_id": connection.receiver_id,
        "status": connection.status,
        "user": other_user,
        "created_at": connection.created_at,
        "updated_at": connection.updated_at,
        "accepted_at": connection.accepted_at,
    }


def _build_match_response(
    result: MatchResult, current_user_id: int, engine: ConnectionMatchEngine
) -> dict:
    return {
        "connection": _build_response(result.connection, current_user_id, engine),
        "matched": result.matched,
        "conversation": result.conversation,
    }


@router.post(
    "/request/{user_id}",
    response_model=MatchRead,
    status_code=status.HTTP_201_CREATED,
)
def send_request(
    user_id: int, response: Response, user: ConnectingUser, engine: Engine
) -> dict:
    """Send a connection request, or match if the other user already asked.

    Parameters:
        user_id: The user to connect with.
        response: Outgoing response, downgraded to 200 on a match.
        user: The authenticated user.
        engine: Connection engine.

    Returns:
        The connection, whether it matched, and the conversation on a match.

    Raises:
        InvalidOperation: 400 if targeting yourself.
        NotFound: 404 if the user does not exist.
        DuplicateRequest: 409 if you already asked.
        AlreadyConnected: 409 if you are already connected.
    """
    result = engine.send_request(user.id, user_id)
    if result.matched:
        response.status_code = status.HTTP_200_OK
    return _build_match_response(result, user.id, engine)


@router.get("/friends", response_model=list[UserSummary])
def list_friends(user: ConnectingUser, engine: Engine):
    return engine.list_friends(user.id)


@router.get("/requests", response_model=list[ConnectionRead])
def list_requests(user: ConnectingUser, engine: Engine) -> list[dict]:
    """List pending connection requests received by the current user, newest first."""
    return [
        _build_response(c, user.id, engine)
        for c in engine.list_pending_incoming(user.id)
    ]


@router.post("/{connection_id}/accept", response_model=MatchRead)
def accept_request(connection_id: int, user: ConnectingUser, engine: Engine) -> dict:
    """Accept a pending connection request addressed to the current user.

    Raises:
        NotFound: 404 if there is no such pending request for you.
    """
    result = engine.accept_request(user.id, connection_id)
    return _build_match_response(result, user.id, engine)


@router.delete("/{connection_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_request(connection_id: int, user: ConnectingUser, engine: Engine) -> None:
    engine.reject_request(user.id, connection_id)


@router.delete("/friends/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_friend(user_id: int, user: ConnectingUser, engine: Engine) -> None:
    engine.remove_friend(user.id, user_id)
