# tests/fakes.py
"""In-memory stand-ins for the PostgreSQL client and realtime connections."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import asyncpg

from hifz.backend.models.db_models import User, Student, SchoolClass, Homework, ROLE_STUDENT
from hifz.backend.api.auth import issue_token
from hifz.backend.modules.passwords import hash_password


_last_stamp = datetime.min.replace(tzinfo=timezone.utc)


def _now() -> datetime:
    """Strictly increasing timestamps so 'newest first' orderings are deterministic."""
    global _last_stamp
    _last_stamp = max(datetime.now(timezone.utc), _last_stamp + timedelta(microseconds=1))
    return _last_stamp


class InMemoryDbClient:
    """Mirrors the AsyncPostgresClient API over plain dictionaries."""

    def __init__(self):
        self.users: Dict[UUID, User] = {}
        self.students: Dict[str, Student] = {}
        self.classes: Dict[UUID, SchoolClass] = {}
        self.homework: List[Homework] = []
        self.fail_writes = False

    def _check_writable(self):
        if self.fail_writes:
            raise ConnectionError("connection is closed")

    # --- Users ---

    async def create_user(self, user: User) -> User:
        self._check_writable()
        for existing in self.users.values():
            if existing.email == user.email or (user.phone_number and existing.phone_number == user.phone_number):
                raise asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        stored = user.model_copy(update={"created_at": _now(), "updated_at": _now()})
        self.users[stored.id] = stored
        return stored

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str, role: Optional[str] = None) -> Optional[User]:
        for user in self.users.values():
            if user.email == email and (role is None or user.role == role):
                return user
        return None

    async def find_user_by_email_or_phone(self, email: str, phone_number: Optional[str]) -> Optional[User]:
        for user in self.users.values():
            if user.email == email or (phone_number and user.phone_number == phone_number):
                return user
        return None

    async def phone_number_exists(self, phone_number: str) -> bool:
        return any(u.phone_number == phone_number for u in self.users.values())

    async def update_user_credentials(self, user_id: UUID, email: str, password_hash: str) -> str:
        self._check_writable()
        user = self.users.get(user_id)
        if user is None:
            return "UPDATE 0"
        self.users[user_id] = user.model_copy(update={"email": email, "password_hash": password_hash})
        return "UPDATE 1"

    async def deactivate_user(self, user_id: UUID) -> str:
        self._check_writable()
        user = self.users.get(user_id)
        if user is None:
            return "UPDATE 0"
        self.users[user_id] = user.model_copy(update={"is_active": False})
        for key, student in self.students.items():
            if student.user_id == user_id:
                self.students[key] = student.model_copy(update={"is_active": False})
        return "UPDATE 1"

    async def list_users(self, role: Optional[str], limit: int, offset: int) -> List[User]:
        users = [u for u in self.users.values() if u.is_active and (role is None or u.role == role)]
        users.sort(key=lambda u: u.created_at, reverse=True)
        return users[offset:offset + limit]

    async def count_users(self, role: Optional[str] = None, active_only: bool = True) -> int:
        return sum(
            1 for u in self.users.values()
            if (role is None or u.role == role) and (not active_only or u.is_active)
        )

    # --- Students ---

    async def create_student_account(self, user: User, student: Student) -> Tuple[User, Student]:
        self._check_writable()
        if student.student_id in self.students:
            raise asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        created_user = await self.create_user(user)
        stored = student.model_copy(update={"user_id": created_user.id, "created_at": _now(), "updated_at": _now()})
        self.students[stored.student_id] = stored
        return created_user, stored

    async def get_student(self, student_id: str, active_only: bool = True) -> Optional[Student]:
        student = self.students.get(student_id)
        if student is None or (active_only and not student.is_active):
            return None
        return student

    async def get_student_by_user_id(self, user_id: UUID) -> Optional[Student]:
        for student in self.students.values():
            if student.user_id == user_id and student.is_active:
                return student
        return None

    async def list_students(self, class_name: str, section: str) -> List[Student]:
        found = [
            s for s in self.students.values()
            if s.class_name == class_name and s.section == section and s.is_active
        ]
        return sorted(found, key=lambda s: s.name)

    async def replace_latest_assignment(self, student_id: str, assignment: Dict[str, Any]) -> bool:
        self._check_writable()
        student = self.students.get(student_id)
        if student is None or not student.is_active:
            return False
        # Yield like a real round-trip so concurrent writers interleave.
        await asyncio.sleep(0)
        self.students[student_id] = Student.model_validate(
            {**student.model_dump(), "latest_assignment": assignment}
        )
        return True

    # --- Classes ---

    async def create_class(self, school_class: SchoolClass) -> SchoolClass:
        self._check_writable()
        if any(c.name == school_class.name for c in self.classes.values()):
            raise asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        stored = school_class.model_copy(update={"created_at": _now(), "updated_at": _now()})
        self.classes[stored.id] = stored
        return stored

    async def get_class_by_name(self, name: str) -> Optional[SchoolClass]:
        for school_class in self.classes.values():
            if school_class.name == name:
                return school_class
        return None

    async def list_classes(self) -> List[SchoolClass]:
        return sorted(self.classes.values(), key=lambda c: c.created_at, reverse=True)

    async def count_classes(self) -> int:
        return len(self.classes)

    async def delete_class(self, class_id: UUID) -> str:
        self._check_writable()
        return "DELETE 1" if self.classes.pop(class_id, None) else "DELETE 0"

    # --- Homework ---

    async def get_homework_for_student(self, student_pk: UUID) -> List[Homework]:
        return [h for h in self.homework if h.student_id == student_pk]

    # --- Seeding helpers for tests ---

    def add_user(self, name: str, email: str, password: str, role: str, phone_number: Optional[str] = None, is_active: bool = True) -> User:
        user = User(
            id=uuid4(),
            name=name,
            email=email,
            phone_number=phone_number,
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
            created_at=_now(),
            updated_at=_now(),
        )
        self.users[user.id] = user
        return user

    def add_student(self, student_id: str, name: str, created_by: UUID, class_name: str = "Hifz", section: str = "A", password: str = "student-pass") -> Tuple[User, Student]:
        user = self.add_user(name, f"{student_id.lower()}@student.hifztracker.com", password, ROLE_STUDENT)
        student = Student(
            id=uuid4(),
            student_id=student_id,
            user_id=user.id,
            name=name,
            urdu_name=name,
            class_name=class_name,
            section=section,
            created_by=created_by,
            created_at=_now(),
            updated_at=_now(),
        )
        self.students[student_id] = student
        return user, student


class FakeConnection:
    """Collects the frames a realtime client would receive."""

    def __init__(self, fail: bool = False):
        self.sent: List[Any] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == name]


# --- Auth helpers ---

ADMIN_PASSWORD = "admin-pass"
TEACHER_PASSWORD = "teacher-pass"


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_token(user)}"}
