import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import asyncpg

from ..models.db_models import User, Student, SchoolClass, Homework

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


async def init_connection(connection: asyncpg.Connection):
    """Pool 'init' hook: JSON/JSONB columns are read and written as Python objects."""
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name, encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
        )


def affected_rows(status: str) -> int:
    """Parses the row count out of a command status such as 'UPDATE 1'."""
    try:
        return int(str(status).split()[-1])
    except (ValueError, IndexError):
        return 0


class AsyncPostgresClient:
    """
    PostgreSQL client that owns every store operation: credentials, roster, classes and homework.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def ensure_schema(self):
        """Creates missing tables and indexes."""
        async with self._pool.acquire() as connection:
            await connection.execute(SCHEMA_PATH.read_text(encoding="utf-8"))

    # ===== Users (credential facet) =====

    async def create_user(self, user: User) -> User:
        query = """
            INSERT INTO Users (id, name, email, phone_number, password_hash, role, masjid_info, student_info, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, *self._user_values(user))
            return User(**record)

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        query = "SELECT * FROM Users WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return User(**record) if record else None

    async def get_user_by_email(self, email: str, role: Optional[str] = None) -> Optional[User]:
        """Looks a user up by email, optionally restricted to one role."""
        query = "SELECT * FROM Users WHERE email = $1 AND ($2::text IS NULL OR role = $2);"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email, role)
            return User(**record) if record else None

    async def find_user_by_email_or_phone(self, email: str, phone_number: Optional[str]) -> Optional[User]:
        query = "SELECT * FROM Users WHERE email = $1 OR ($2::text IS NOT NULL AND phone_number = $2) LIMIT 1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email, phone_number)
            return User(**record) if record else None

    async def phone_number_exists(self, phone_number: str) -> bool:
        query = "SELECT EXISTS (SELECT 1 FROM Users WHERE phone_number = $1);"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, phone_number)

    async def update_user_credentials(self, user_id: UUID, email: str, password_hash: str) -> str:
        query = """
            UPDATE Users
            SET email = $2, password_hash = $3, updated_at = now()
            WHERE id = $1;
        """
        async with self._pool.acquire() as connection:
            return await connection.execute(query, user_id, email, password_hash)

    async def deactivate_user(self, user_id: UUID) -> str:
        """
        Soft-deletes a user. A linked roster record is deactivated in the same transaction
        so the two facets of a student never disagree.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                status = await connection.execute(
                    "UPDATE Users SET is_active = FALSE, updated_at = now() WHERE id = $1;", user_id
                )
                await connection.execute(
                    "UPDATE Students SET is_active = FALSE, updated_at = now() WHERE user_id = $1;", user_id
                )
                return status

    async def list_users(self, role: Optional[str], limit: int, offset: int) -> List[User]:
        """Active users, newest first."""
        query = """
            SELECT * FROM Users
            WHERE is_active = TRUE AND ($1::text IS NULL OR role = $1)
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, role, limit, offset)
            return [User(**record) for record in records]

    async def count_users(self, role: Optional[str] = None, active_only: bool = True) -> int:
        """Counts users, optionally of a single role."""
        query = """
            SELECT count(*) FROM Users
            WHERE ($1::text IS NULL OR role = $1) AND (NOT $2::boolean OR is_active = TRUE);
        """
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, role, active_only)

    # ===== Students (roster facet) =====

    async def create_student_account(self, user: User, student: Student) -> Tuple[User, Student]:
        """Creates the student's User and roster record atomically."""
        student_query = """
            INSERT INTO Students (id, student_id, user_id, name, urdu_name, class_name, section, teacher_id, created_by, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *;
        """
        user_query = """
            INSERT INTO Users (id, name, email, phone_number, password_hash, role, masjid_info, student_info, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                user_record = await connection.fetchrow(user_query, *self._user_values(user))
                student_record = await connection.fetchrow(
                    student_query,
                    student.id, student.student_id, user_record["id"], student.name, student.urdu_name,
                    student.class_name, student.section, student.teacher_id, student.created_by, student.is_active
                )
                return User(**user_record), Student(**student_record)

    async def get_student(self, student_id: str, active_only: bool = True) -> Optional[Student]:
        """Returns the roster record with this student id; deactivated ones only when asked for."""
        query = "SELECT * FROM Students WHERE student_id = $1 AND (NOT $2::boolean OR is_active = TRUE);"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id, active_only)
            return Student(**record) if record else None

    async def get_student_by_user_id(self, user_id: UUID) -> Optional[Student]:
        query = "SELECT * FROM Students WHERE user_id = $1 AND is_active = TRUE;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return Student(**record) if record else None

    async def list_students(self, class_name: str, section: str) -> List[Student]:
        query = """
            SELECT * FROM Students
            WHERE class_name = $1 AND section = $2 AND is_active = TRUE
            ORDER BY name;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, class_name, section)
            return [Student(**record) for record in records]

    async def replace_latest_assignment(self, student_id: str, assignment: Dict[str, Any]) -> bool:
        """
        Overwrites the student's latest-assignment snapshot in a single statement.
        Returns False when no active student has this id. Concurrent writers are last-write-wins.
        """
        query = """
            UPDATE Students
            SET latest_assignment = $2, updated_at = now()
            WHERE student_id = $1 AND is_active = TRUE;
        """
        async with self._pool.acquire() as connection:
            status = await connection.execute(query, student_id, assignment)
            return affected_rows(status) > 0

    # ===== Classes =====

    async def create_class(self, school_class: SchoolClass) -> SchoolClass:
        query = """
            INSERT INTO Classes (id, name, sections, created_by)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, school_class.id, school_class.name, school_class.sections, school_class.created_by
            )
            return SchoolClass(**record)

    async def get_class_by_name(self, name: str) -> Optional[SchoolClass]:
        query = "SELECT * FROM Classes WHERE name = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, name)
            return SchoolClass(**record) if record else None

    async def list_classes(self) -> List[SchoolClass]:
        query = "SELECT * FROM Classes ORDER BY created_at DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [SchoolClass(**record) for record in records]

    async def count_classes(self) -> int:
        async with self._pool.acquire() as connection:
            return await connection.fetchval("SELECT count(*) FROM Classes;")

    async def delete_class(self, class_id: UUID) -> str:
        """Hard-deletes a class."""
        async with self._pool.acquire() as connection:
            return await connection.execute("DELETE FROM Classes WHERE id = $1;", class_id)

    # ===== Homework =====

    async def get_homework_for_student(self, student_pk: UUID) -> List[Homework]:
        query = "SELECT * FROM Homework WHERE student_id = $1 ORDER BY date_assigned DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_pk)
            return [Homework(**record) for record in records]

    @staticmethod
    def _user_values(user: User) -> tuple:
        return (
            user.id, user.name, user.email, user.phone_number, user.password_hash,
            user.role, user.masjid_info, user.student_info, user.is_active
        )
