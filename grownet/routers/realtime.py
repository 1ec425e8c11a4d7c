import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from grownet.dependencies import DbSession, user_from_access_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def presence_socket(websocket: WebSocket, db: DbSession, token: str = ""):
    """Hold a socket open so the user receives pushes while online.

    The client authenticates with ``?token=<access token>``. The only
    inbound message understood is ``{"event": "ping"}``; pushes arrive as
    ``{"event": <name>, "data": <payload>}``.
    """
    user = await asyncio.to_thread(user_from_access_token, token, db)
    user_id: int | None = user.id if user is not None else None
    # Sockets are long-lived; give the pooled connection back now.
    await asyncio.to_thread(db.close)

    if user_id is None:
        logger.warning("Rejected socket with an invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    presence = websocket.app.state.presence
    await websocket.accept()
    presence.register(user_id, websocket, asyncio.get_running_loop())
    try:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("event") == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
    except WebSocketDisconnect:
        pass
    finally:
        presence.unregister(user_id, websocket)
