import asyncio
import logging
import math
import random
import re
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4
import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Student, ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER
from ..modules.passwords import hash_password, verify_password
from .errors import (
    AuthenticationError,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PHONE_NUMBER_ATTEMPTS = 20
STUDENT_EMAIL_DOMAIN = "student.hifztracker.com"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def student_email(name: str, student_id: str) -> str:
    """Synthetic login email of a student account, e.g. 'ali.khan.s100@student.hifztracker.com'."""
    slug = re.sub(r"\s+", ".", name.strip().lower())
    return f"{slug}.{student_id.strip().lower()}@{STUDENT_EMAIL_DOMAIN}"


def _require(value: Optional[str], message: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidRequestError(message)
    return str(value).strip()


def _check_password(password: Optional[str]) -> str:
    if not password:
        raise InvalidRequestError("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


class UserService:
    """
    Service layer for accounts: registration, logins, admin account management and seeding.
    Passwords are hashed in a worker thread and never logged.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password)

    async def _verify(self, password: Optional[str], password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password, password or "", password_hash)

    async def _create_user(self, user: User, failure_message: str) -> User:
        try:
            return await self.db_client.create_user(user)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("User with this email or phone number already exists") from e
        except Exception as e:
            logger.error(f"Error creating {user.role} account.", exc_info=True)
            raise PersistenceError(failure_message, str(e)) from e

    async def _generate_phone_number(self) -> str:
        """Synthetic unique phone number for accounts that have none: '1' followed by 9 digits."""
        for _ in range(PHONE_NUMBER_ATTEMPTS):
            candidate = "1" + f"{random.randrange(10 ** 9):09d}"
            if not await self.db_client.phone_number_exists(candidate):
                return candidate
        raise PersistenceError("Could not generate a unique phone number")

    # --- Registration & Login ---

    async def register_teacher(self, name: str, email: str, phone_number: str, password: str, masjid_info: Optional[Dict[str, Any]] = None) -> User:
        name = _require(name, "Name is required")
        email = normalize_email(_require(email, "Email is required"))
        phone_number = _require(phone_number, "Phone number is required")
        _check_password(password)

        if await self.db_client.find_user_by_email_or_phone(email, phone_number):
            raise ConflictError("User with this email or phone number already exists")

        user = User(
            id=uuid4(),
            name=name,
            email=email,
            phone_number=phone_number,
            password_hash=await self._hash(password),
            role=ROLE_TEACHER,
            masjid_info=masjid_info,
        )
        created = await self._create_user(user, "Registration failed")
        logger.info(f"Teacher account {created.id} registered.")
        return created

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.db_client.get_user_by_email(normalize_email(email))
        if user is None or not await self._verify(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        return user

    async def authenticate_admin(self, username: str, password: str) -> User:
        """Admin login by username, which is the admin's email."""
        admin = await self.db_client.get_user_by_email(normalize_email(username), role=ROLE_ADMIN)
        if admin is None or not await self._verify(password, admin.password_hash):
            raise AuthenticationError("Invalid admin credentials")
        if not admin.is_active:
            raise AuthenticationError("Admin account is deactivated")
        return admin

    async def admin_login(self, email: str, password: str) -> User:
        """Legacy admin login that tells an unknown admin apart from a wrong password."""
        admin = await self.db_client.get_user_by_email(normalize_email(email), role=ROLE_ADMIN)
        if admin is None:
            raise NotFoundError("Admin not found")
        if not await self._verify(password, admin.password_hash):
            raise AuthenticationError("Invalid password")
        if not admin.is_active:
            raise AuthenticationError("Admin account is deactivated")
        return admin

    async def authenticate_student(self, student_id: str, password: Optional[str]) -> Tuple[User, Student]:
        """Resolves the roster record by student id, then checks the linked account's password."""
        student_id = _require(student_id, "Student ID is required")
        if not password:
            raise AuthenticationError("Password is required")

        student = await self.db_client.get_student(student_id, active_only=False)
        user = await self.db_client.get_user_by_id(student.user_id) if student and student.user_id else None
        if student is None or user is None or user.role != ROLE_STUDENT:
            raise AuthenticationError("Invalid student ID")
        if not await self._verify(password, user.password_hash):
            raise AuthenticationError("Invalid password")
        if not user.is_active or not student.is_active:
            raise AuthenticationError("Student account is deactivated")
        return user, student

    # --- Admin Operations ---

    async def update_admin_credentials(self, admin: User, old_username: str, old_password: str, new_username: str, new_password: str) -> User:
        current = await self.db_client.get_user_by_id(admin.id)
        if current is None:
            raise NotFoundError("Admin user not found")
        if current.email != normalize_email(old_username):
            raise InvalidRequestError("Invalid old username")
        if not await self._verify(old_password, current.password_hash):
            raise InvalidRequestError("Invalid old password")

        new_email = normalize_email(_require(new_username, "New username is required"))
        _check_password(new_password)
        existing = await self.db_client.get_user_by_email(new_email)
        if existing and existing.id != current.id:
            raise ConflictError("Username already exists")

        try:
            await self.db_client.update_user_credentials(current.id, new_email, await self._hash(new_password))
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Username already exists") from e
        except Exception as e:
            logger.error(f"Error updating credentials of admin {current.id}.", exc_info=True)
            raise PersistenceError("Failed to update admin credentials", str(e)) from e

        logger.info(f"Admin {current.id} updated their credentials.")
        return current.model_copy(update={"email": new_email})

    async def dashboard_stats(self) -> Dict[str, int]:
        teachers, students, classes = await asyncio.gather(
            self.db_client.count_users(ROLE_TEACHER),
            self.db_client.count_users(ROLE_STUDENT),
            self.db_client.count_classes(),
        )
        return {"total_teachers": teachers, "total_students": students, "total_classes": classes}

    async def add_teacher(self, name: str, email: str, phone_number: str, password: Optional[str]) -> User:
        name = _require(name, "Name is required")
        email = normalize_email(_require(email, "Email is required"))
        phone_number = _require(phone_number, "Phone number is required")
        _check_password(password)

        if await self.db_client.find_user_by_email_or_phone(email, phone_number):
            raise ConflictError("User with this email or phone number already exists")

        teacher = User(
            id=uuid4(),
            name=name,
            email=email,
            phone_number=phone_number,
            password_hash=await self._hash(password),
            role=ROLE_TEACHER,
        )
        created = await self._create_user(teacher, "Failed to add teacher")
        logger.info(f"Teacher {created.id} added.")
        return created

    async def add_student(self, admin: User, name: str, student_id: str, password: Optional[str], student_info: Optional[Dict[str, Any]] = None) -> Tuple[User, Student]:
        """
        Creates a student's account and roster record in one transaction.

        Args:
            admin: The admin performing the operation; creator when no teacher is assigned.
            name: Display name of the student.
            student_id: Human-assigned student identifier, unique across the roster.
            password: Initial password of the student account.
            student_info: 'class', 'section', optional 'urduName' and 'teacherId'.
        """
        info = student_info or {}
        name = _require(name, "Name is required")
        student_id = _require(student_id, "Student ID is required")
        _check_password(password)
        class_name = _require(info.get("class"), "Class is required")
        section = _require(info.get("section"), "Section is required")
        urdu_name = (info.get("urduName") or "").strip() or name

        teacher_id = await self._resolve_teacher(info.get("teacherId"))

        if await self.db_client.get_student(student_id, active_only=False):
            raise ConflictError("Student ID already exists")
        email = student_email(name, student_id)
        if await self.db_client.get_user_by_email(email):
            raise ConflictError("User with this email or phone number already exists")

        user = User(
            id=uuid4(),
            name=name,
            email=email,
            phone_number=await self._generate_phone_number(),
            password_hash=await self._hash(password),
            role=ROLE_STUDENT,
            student_info={"class": class_name, "section": section},
        )
        student = Student(
            id=uuid4(),
            student_id=student_id,
            user_id=user.id,
            name=name,
            urdu_name=urdu_name,
            class_name=class_name,
            section=section,
            teacher_id=teacher_id,
            created_by=teacher_id or admin.id,
        )

        try:
            created_user, created_student = await self.db_client.create_student_account(user, student)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Student ID or account already exists") from e
        except Exception as e:
            logger.error(f"Error adding student '{student_id}'.", exc_info=True)
            raise PersistenceError("Failed to add student", str(e)) from e

        logger.info(f"Student '{student_id}' added to {class_name}{section}.")
        return created_user, created_student

    async def _resolve_teacher(self, teacher_id: Optional[str]) -> Optional[UUID]:
        if teacher_id is None or not str(teacher_id).strip():
            return None
        try:
            teacher_uuid = UUID(str(teacher_id).strip())
        except ValueError:
            raise InvalidRequestError("Assigned teacher not found")
        teacher = await self.db_client.get_user_by_id(teacher_uuid)
        if teacher is None or teacher.role != ROLE_TEACHER or not teacher.is_active:
            raise InvalidRequestError("Assigned teacher not found")
        return teacher.id

    async def list_users(self, role: Optional[str], page: int, limit: int) -> Dict[str, Any]:
        offset = (page - 1) * limit
        users: List[User] = await self.db_client.list_users(role, limit, offset)
        total = await self.db_client.count_users(role)
        return {
            "users": users,
            "total_pages": math.ceil(total / limit),
            "current_page": page,
            "total": total,
        }

    async def deactivate_user(self, actor: User, user_id: str):
        if user_id == str(actor.id):
            raise InvalidRequestError("Cannot delete your own account")
        try:
            target_id = UUID(user_id)
        except ValueError:
            raise NotFoundError("User not found")

        if await self.db_client.get_user_by_id(target_id) is None:
            raise NotFoundError("User not found")
        try:
            await self.db_client.deactivate_user(target_id)
        except Exception as e:
            logger.error(f"Error deactivating user {target_id}.", exc_info=True)
            raise PersistenceError("Failed to delete user", str(e)) from e
        logger.info(f"User {target_id} deactivated by admin {actor.id}.")

    # --- Seeding ---

    async def ensure_admin(self, name: str, email: str, password: str) -> Optional[User]:
        """Creates an admin account unless one already exists (active or not)."""
        if await self.db_client.count_users(ROLE_ADMIN, active_only=False) > 0:
            logger.info("An admin account already exists, skipping default admin creation.")
            return None

        email = normalize_email(email)
        if await self.db_client.get_user_by_email(email):
            logger.warning(f"Cannot create default admin: '{email}' is already used by another account.")
            return None

        admin = User(
            id=uuid4(),
            name=name,
            email=email,
            phone_number=await self._generate_phone_number(),
            password_hash=await self._hash(password),
            role=ROLE_ADMIN,
        )
        created = await self._create_user(admin, "Failed to create default admin")
        logger.info(f"Default admin '{email}' created.")
        return created
