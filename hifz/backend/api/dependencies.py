# hifz/backend/api/dependencies.py
from fastapi import Depends, Request, status
from starlette.requests import HTTPConnection
import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..realtime.hub import RealtimeHub
from ..services.assignment_service import AssignmentService
from ..services.class_service import ClassService
from ..services.user_service import UserService
from .utilities.errors import AppHTTPException


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    The shared PostgreSQL pool from the application state.
    While the database is unreachable the pool is None and store-dependent routes answer 503.
    """
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        raise AppHTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is unavailable, please try again shortly"
        )
    return pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_realtime_hub(connection: HTTPConnection) -> RealtimeHub:
    """The process-wide realtime hub; works for both HTTP and WebSocket routes."""
    return connection.app.state.hub


def get_user_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> UserService:
    return UserService(db_client=db_client)


def get_assignment_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    hub: RealtimeHub = Depends(get_realtime_hub)
) -> AssignmentService:
    """A fresh AssignmentService per request over the shared pool and hub."""
    return AssignmentService(db_client=db_client, hub=hub)


def get_class_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    hub: RealtimeHub = Depends(get_realtime_hub)
) -> ClassService:
    return ClassService(db_client=db_client, hub=hub)
