import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..models.event_models import ClientMessage, JoinClassData, JoinStudentData
from ..realtime.hub import RealtimeHub
from .dependencies import get_realtime_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

# --- Inbound/outbound protocol events ---
EVENT_JOIN_CLASS = "join_class"
EVENT_JOIN_STUDENT = "join_student"
EVENT_JOINED = "joined"
EVENT_ERROR = "error"


async def _send_error(websocket: WebSocket, message: str):
    await websocket.send_json({"event": EVENT_ERROR, "data": {"message": message}})


async def _handle_frame(websocket: WebSocket, hub: RealtimeHub, raw: str):
    try:
        message = ClientMessage.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError):
        await _send_error(websocket, "Malformed message, expected {\"event\": ..., \"data\": ...}")
        return

    try:
        if message.event == EVENT_JOIN_CLASS:
            data = JoinClassData.model_validate(message.data)
            room = hub.join_class_room(websocket, data.class_name, data.section)
        elif message.event == EVENT_JOIN_STUDENT:
            # Clients send either the bare id or {"studentId": ...}
            payload = {"studentId": str(message.data)} if isinstance(message.data, (str, int)) else message.data
            data = JoinStudentData.model_validate(payload)
            room = hub.join_student_room(websocket, data.student_id)
        else:
            await _send_error(websocket, f"Unknown event '{message.event}'")
            return
    except ValidationError:
        await _send_error(websocket, f"Invalid data for '{message.event}'")
        return

    await websocket.send_json({"event": EVENT_JOINED, "data": {"room": room}})


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, hub: RealtimeHub = Depends(get_realtime_hub)):
    """
    Realtime channel. Clients join rooms with join_class / join_student and then receive
    new_task and new_class events. Membership ends with the connection.
    """
    await websocket.accept()
    hub.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                await _send_error(websocket, "Binary frames are not supported, send JSON text")
                continue
            await _handle_frame(websocket, hub, raw)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
