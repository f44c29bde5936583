# hifz/backend/api/schemas/user.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID

from ...models.base import CamelModel


# --- Requests ---

class RegisterRequest(CamelModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    masjid_info: Optional[Dict[str, Any]] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class StudentLoginRequest(CamelModel):
    student_id: Optional[str] = None
    password: Optional[str] = None


class AdminLoginRequest(BaseModel):
    """The admin's username is its email."""
    username: str
    password: str


class UpdateCredentialsRequest(CamelModel):
    old_username: str
    old_password: str
    new_username: str
    new_password: str


class AddTeacherRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    password: Optional[str] = None


class StudentInfo(CamelModel):
    class_name: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None
    urdu_name: Optional[str] = None
    teacher_id: Optional[str] = None


class AddStudentRequest(CamelModel):
    """phoneNumber carries the human-assigned student id, as the admin clients send it."""
    name: Optional[str] = None
    phone_number: Optional[str] = None
    password: Optional[str] = None
    student_info: Optional[StudentInfo] = None


# --- Responses ---

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(CamelModel):
    """A user as returned to clients; the password hash is never part of it."""
    id: UUID
    name: str
    email: str
    phone_number: Optional[str] = None
    role: str
    masjid_info: Optional[Dict[str, Any]] = None
    student_info: Optional[Dict[str, Any]] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class StudentResponse(CamelModel):
    id: UUID
    student_id: str
    user_id: Optional[UUID] = None
    name: str
    urdu_name: str
    class_name: str = Field(..., alias="class")
    section: str
    teacher_id: Optional[UUID] = None
    is_active: bool = True


class AuthData(CamelModel):
    user: UserResponse
    token: str


class StudentAuthData(CamelModel):
    user: UserResponse
    student: StudentResponse
    token: str


class MeData(CamelModel):
    user: UserResponse


class AddedStudentData(CamelModel):
    user: UserResponse
    student: StudentResponse


class DashboardStats(CamelModel):
    total_teachers: int
    total_students: int
    total_classes: int


class UserListData(CamelModel):
    users: List[UserResponse]
    total_pages: int
    current_page: int
    total: int


class StudentListData(CamelModel):
    students: List[StudentResponse]


# Internal representation of JWT data
class TokenData(BaseModel):
    id: UUID
    role: Optional[str] = None
