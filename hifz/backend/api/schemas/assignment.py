# hifz/backend/api/schemas/assignment.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ...models.assignment_models import Assignment
from ...models.base import CamelModel


class AssignmentData(CamelModel):
    assignment: Assignment


class AssignmentListData(CamelModel):
    """Zero or one element: the student's latest assignment."""
    assignments: List[Assignment]


class HomeworkResponse(CamelModel):
    id: UUID
    student_id: UUID
    teacher_id: UUID
    type: str
    surah: Optional[str] = None
    start_verse: Optional[int] = None
    end_verse: Optional[int] = None
    mistakes: int = 0
    qualities: str = ""
    status: str
    date_assigned: datetime


class HomeworkListData(CamelModel):
    homework: List[HomeworkResponse]
