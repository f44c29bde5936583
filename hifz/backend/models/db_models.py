# hifz/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any, Literal
from uuid import UUID

from .assignment_models import Assignment

ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"

Role = Literal["teacher", "admin", "student"]


class User(BaseModel):
    """
    Represents an account, mapping to the 'Users' table.
    """
    id: UUID
    name: str
    email: str = Field(..., description="Unique, stored lowercase. Admins log in with it as their username.")
    phone_number: Optional[str] = Field(None, description="Unique. Generated for student accounts.")
    password_hash: str
    role: Role = ROLE_TEACHER
    masjid_info: Optional[Dict[str, Any]] = None
    student_info: Optional[Dict[str, Any]] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Student(BaseModel):
    """
    Represents a roster record, mapping to the 'Students' table.
    The credential facet of the same student is the User referenced by user_id.
    """
    id: UUID
    student_id: str = Field(..., description="Human-assigned unique student identifier")
    user_id: Optional[UUID] = Field(None, description="FK linking to the student's User account")
    name: str
    urdu_name: str
    class_name: str
    section: str
    teacher_id: Optional[UUID] = None
    created_by: UUID
    is_active: bool = True
    latest_assignment: Optional[Assignment] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SchoolClass(BaseModel):
    """
    Represents a class, mapping to the 'Classes' table. Deleted for real, never soft-deleted.
    """
    id: UUID
    name: str
    sections: List[str] = Field(..., min_length=1)
    created_by: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Homework(BaseModel):
    """
    Represents a graded homework entry, mapping to the 'Homework' table.
    Kept alongside the latest-assignment snapshot; it is not written by the assignment flow.
    """
    id: UUID
    student_id: UUID = Field(..., description="FK linking to Students.id")
    teacher_id: UUID
    type: Literal["sabak", "revision", "manzil", "new"] = "sabak"
    surah: Optional[str] = None
    start_verse: Optional[int] = None
    end_verse: Optional[int] = None
    mistakes: int = 0
    qualities: str = ""
    status: Literal["pending", "completed"] = "pending"
    date_assigned: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
