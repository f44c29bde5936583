from pydantic import BaseModel, Field
from typing import Any, Optional

from .base import CamelModel


class RoomEvent(BaseModel):
    """
    An event relayed between worker processes over Redis pub/sub.
    A room of None means every connection of every process.
    """
    room: Optional[str] = Field(None, description="Target room key, e.g. 'student:S100'")
    event: str = Field(..., description="Outbound event name, e.g. 'new_task'")
    data: Any = None


class ClientMessage(BaseModel):
    """A frame received from a realtime client: {"event": ..., "data": ...}."""
    event: str
    data: Any = None


class JoinClassData(CamelModel):
    class_name: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)


class JoinStudentData(CamelModel):
    student_id: str = Field(..., min_length=1)
