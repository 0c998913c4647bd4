"""Real-time websocket endpoint.

Protocol (JSON text frames, ``{"event": ..., ...}``):

- client ``join`` with ``token``: server answers ``joined`` and starts
  pushing ``new_bid``, ``hired``, ``new_message`` and ``new_job``
- client ``ping``: server answers ``pong``
- a bad join gets an ``error`` event and the socket is closed with 1008
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..auth import account_from_token
from ..config import get_settings
from ..logging_config import get_logger, log_auth_event

logger = get_logger("gigflow.api.realtime")
router = APIRouter(tags=["realtime"])


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"message": message}})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket):
    bus = websocket.app.state.bus
    store = websocket.app.state.store
    settings = get_settings()

    await websocket.accept()
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "Frames must be JSON objects")
                continue
            event = frame.get("event") if isinstance(frame, dict) else None

            if event == "join":
                account = account_from_token(frame.get("token"), settings, store)
                if account is None:
                    log_auth_event("socket_join", "unknown", False, "invalid token")
                    await _send_error(websocket, "Invalid or expired token")
                    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
                    return
                bus.register_connection(account.id, websocket)
                await websocket.send_json({"event": "joined", "data": {"account_id": account.id}})
            elif event == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
            else:
                await _send_error(websocket, f"Unknown event: {event}")
    except WebSocketDisconnect:
        logger.debug("Websocket disconnected")
    finally:
        bus.unregister_connection(websocket)
