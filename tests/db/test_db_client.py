import asyncio
import os
import uuid
from typing import Tuple

import asyncpg
import pytest
import pytest_asyncio

from hifz.backend.db.db_client import AsyncPostgresClient, affected_rows, init_connection
from hifz.backend.models.db_models import User, Student, SchoolClass, ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER

# ----- Test Database Connection -----
# Points at a disposable database; every table is truncated before each test.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


@pytest_asyncio.fixture(scope="function")
async def db_pool():
    """A pool on the test database with the schema applied and every table emptied."""
    if not TEST_DATABASE_URL:
        pytest.skip("TEST_DATABASE_URL is not set")
    pool = await asyncpg.create_pool(TEST_DATABASE_URL, init=init_connection)
    try:
        await AsyncPostgresClient(pool=pool).ensure_schema()
        async with pool.acquire() as connection:
            await connection.execute("TRUNCATE TABLE Homework, Students, Classes, Users CASCADE;")
        yield pool
    finally:
        await pool.close()


# ===== Helpers & Sample Data =====

def sample_user(role: str = ROLE_TEACHER, email: str = "bilal@hifz.test", phone_number: str = "5550001") -> User:
    return User(id=uuid.uuid4(), name="Ustadh Bilal", email=email, phone_number=phone_number, password_hash="hash", role=role)


async def create_student(client: AsyncPostgresClient, creator: User, student_id: str = "S100") -> Tuple[User, Student]:
    user = sample_user(ROLE_STUDENT, email=f"{student_id.lower()}@student.hifztracker.com", phone_number=f"1{student_id[1:]:0>9}")
    student = Student(
        id=uuid.uuid4(),
        student_id=student_id,
        user_id=user.id,
        name="Yusuf",
        urdu_name="یوسف",
        class_name="Hifz",
        section="A",
        created_by=creator.id,
    )
    return await client.create_student_account(user, student)


def test_affected_rows():
    assert affected_rows("UPDATE 1") == 1
    assert affected_rows("DELETE 0") == 0
    assert affected_rows("") == 0


# ===== Test Scenarios =====

@pytest.mark.asyncio
async def test_schema_is_idempotent(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    await client.ensure_schema()
    await client.ensure_schema()


@pytest.mark.asyncio
async def test_create_and_find_users(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    teacher = await client.create_user(sample_user(ROLE_TEACHER))

    assert (await client.get_user_by_id(teacher.id)).email == "bilal@hifz.test"
    assert await client.get_user_by_email("bilal@hifz.test", role=ROLE_ADMIN) is None
    assert (await client.find_user_by_email_or_phone("other@hifz.test", "5550001")).id == teacher.id
    assert await client.phone_number_exists("5550001")
    assert teacher.created_at is not None

    with pytest.raises(asyncpg.UniqueViolationError):
        await client.create_user(sample_user(ROLE_TEACHER, phone_number="5550002"))


@pytest.mark.asyncio
async def test_jsonb_columns_round_trip(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    user = sample_user().model_copy(update={"masjid_info": {"name": "Masjid Noor", "city": "Lahore"}})

    created = await client.create_user(user)

    assert created.masjid_info == {"name": "Masjid Noor", "city": "Lahore"}


@pytest.mark.asyncio
async def test_student_account_links_both_facets(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    teacher = await client.create_user(sample_user())

    user, student = await create_student(client, teacher)

    assert student.user_id == user.id
    assert (await client.get_student_by_user_id(user.id)).student_id == "S100"
    assert [s.student_id for s in await client.list_students("Hifz", "A")] == ["S100"]
    assert await client.count_users(ROLE_STUDENT) == 1


@pytest.mark.asyncio
async def test_failed_student_account_leaves_no_user_behind(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    teacher = await client.create_user(sample_user())
    await create_student(client, teacher, "S100")

    user = sample_user(ROLE_STUDENT, email="dup@student.hifztracker.com", phone_number="1999999999")
    duplicate = Student(
        id=uuid.uuid4(), student_id="S100", user_id=user.id, name="Copy", urdu_name="Copy",
        class_name="Hifz", section="A", created_by=teacher.id
    )
    with pytest.raises(asyncpg.UniqueViolationError):
        await client.create_student_account(user, duplicate)

    assert await client.get_user_by_id(user.id) is None


@pytest.mark.asyncio
async def test_deactivation_hides_student_everywhere(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    teacher = await client.create_user(sample_user())
    user, _ = await create_student(client, teacher)

    assert affected_rows(await client.deactivate_user(user.id)) == 1

    assert await client.get_student("S100") is None
    assert (await client.get_student("S100", active_only=False)).is_active is False
    assert await client.list_students("Hifz", "A") == []
    assert await client.count_users(ROLE_STUDENT) == 0
    assert await client.replace_latest_assignment("S100", {"title": "late"}) is False


@pytest.mark.asyncio
async def test_latest_assignment_is_replaced_not_appended(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    teacher = await client.create_user(sample_user())
    await create_student(client, teacher)
    base = {
        "studentId": "S100", "type": "lesson", "status": "assigned", "createdAt": "2026-01-01T00:00:00+00:00",
        "startSurah": {"name": "Surah 2"}, "endSurah": {"name": "Surah 2"},
    }

    assert await client.replace_latest_assignment("S100", {**base, "title": "First"})
    assert await client.replace_latest_assignment("S100", {**base, "title": "Second"})

    student = await client.get_student("S100")
    assert student.latest_assignment.title == "Second"
    assert await client.replace_latest_assignment("S404", {**base, "title": "Nobody"}) is False


@pytest.mark.asyncio
async def test_concurrent_replacements_leave_one_snapshot(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    teacher = await client.create_user(sample_user())
    await create_student(client, teacher)
    base = {
        "studentId": "S100", "type": "lesson", "status": "assigned", "createdAt": "2026-01-01T00:00:00+00:00",
        "startSurah": {"name": "Surah 2"}, "endSurah": {"name": "Surah 2"},
    }
    titles = [f"Race {i}" for i in range(5)]

    await asyncio.gather(*(client.replace_latest_assignment("S100", {**base, "title": t}) for t in titles))

    assert (await client.get_student("S100")).latest_assignment.title in titles


@pytest.mark.asyncio
async def test_classes(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    admin = await client.create_user(sample_user(ROLE_ADMIN, email="admin@hifz.test", phone_number="1000000001"))

    first = await client.create_class(SchoolClass(id=uuid.uuid4(), name="Morning", sections=["A"], created_by=admin.id))
    second = await client.create_class(SchoolClass(id=uuid.uuid4(), name="Evening", sections=["A", "B"], created_by=admin.id))

    assert (await client.get_class_by_name("Evening")).sections == ["A", "B"]
    assert [c.id for c in await client.list_classes()] == [second.id, first.id]
    assert await client.count_classes() == 2
    with pytest.raises(asyncpg.UniqueViolationError):
        await client.create_class(SchoolClass(id=uuid.uuid4(), name="Morning", sections=["C"], created_by=admin.id))

    assert affected_rows(await client.delete_class(first.id)) == 1
    assert affected_rows(await client.delete_class(first.id)) == 0


@pytest.mark.asyncio
async def test_update_credentials_and_pagination(db_pool: asyncpg.Pool):
    client = AsyncPostgresClient(pool=db_pool)
    admin = await client.create_user(sample_user(ROLE_ADMIN, email="admin@hifz.test", phone_number="1000000001"))
    for i in range(3):
        await client.create_user(sample_user(ROLE_TEACHER, email=f"t{i}@hifz.test", phone_number=f"555000{i}"))

    assert affected_rows(await client.update_user_credentials(admin.id, "root@hifz.test", "new-hash")) == 1
    assert (await client.get_user_by_email("root@hifz.test")).password_hash == "new-hash"

    page = await client.list_users(ROLE_TEACHER, limit=2, offset=2)
    assert len(page) == 1
    assert await client.count_users() == 4
