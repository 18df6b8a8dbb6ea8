from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..auth import verify_token
from ..database import get_db
from .. import models

router = APIRouter()
logger = logging.getLogger(__name__)


async def _send_error(websocket: WebSocket, message: str):
    await websocket.send_json({"event": "error", "data": {"message": message}})


def _authenticate(db: Session, token: Optional[str]) -> Optional[models.Company]:
    payload = verify_token(token) if token else None
    if not payload or not payload.get("companyId"):
        return None
    company = db.query(models.Company).filter(models.Company.id == payload["companyId"]).first()
    if company is None or not company.is_active:
        return None
    return company


@router.websocket("/ws")
async def realtime_ws(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Per-company event stream

    Connect with ``/ws?token=<jwt>`` and send
    ``{"event": "join-room", "data": "<companyId>"}``. Only the token's own
    company room can be joined; events then arrive as ``{"event", "data"}``.
    """
    await websocket.accept()

    company = _authenticate(db, token)
    if company is None:
        await _send_error(websocket, "Invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    company_id = company.id
    # The session is only needed for the handshake
    db.close()

    connections = websocket.app.state.connections
    logger.info(f"Realtime client connected for company {company_id}")

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "Invalid message")
                continue

            event = message.get("event") if isinstance(message, dict) else None
            if event == "join-room":
                room = message.get("data")
                if room != company_id:
                    logger.warning(f"Company {company_id} tried to join room {room}")
                    await _send_error(websocket, "Not allowed to join this room")
                    continue
                connections.join(room, websocket)
                await websocket.send_json({"event": "joined-room", "data": room})
            else:
                await _send_error(websocket, f"Unknown event: {event}")
    except WebSocketDisconnect:
        logger.info(f"Realtime client disconnected for company {company_id}")
    finally:
        connections.leave(websocket)
