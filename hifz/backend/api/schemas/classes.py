# hifz/backend/api/schemas/classes.py
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from ...models.base import CamelModel


class ClassCreateRequest(CamelModel):
    name: Optional[str] = None
    sections: Optional[List[Any]] = None


class ClassResponse(CamelModel):
    id: UUID
    name: str
    sections: List[str]
    created_by: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
