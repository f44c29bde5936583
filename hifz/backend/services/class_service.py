import logging
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4
import asyncpg
from pydantic.alias_generators import to_camel

from ..db.db_client import AsyncPostgresClient, affected_rows
from ..models.db_models import User, SchoolClass, Student
from ..realtime.hub import RealtimeHub
from ..tasks.background import run_in_background
from .errors import ConflictError, InvalidRequestError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


def class_payload(school_class: SchoolClass) -> Dict[str, Any]:
    """JSON shape of a class as pushed to realtime clients."""
    return {to_camel(key): value for key, value in school_class.model_dump(mode="json").items()}


class ClassService:
    """
    Service layer for classes and their section rosters.
    """
    def __init__(self, db_client: AsyncPostgresClient, hub: RealtimeHub):
        self.db_client = db_client
        self.hub = hub

    async def create_class(self, admin: User, name: Optional[str], sections: Optional[List[str]], schedule: Optional[Callable[..., Any]] = None) -> SchoolClass:
        name = (name or "").strip()
        cleaned_sections = [str(s).strip() for s in (sections or []) if str(s).strip()]
        if not name or not cleaned_sections:
            raise InvalidRequestError("Class name and at least one section required")

        if await self.db_client.get_class_by_name(name):
            raise ConflictError("Class already exists")

        try:
            created = await self.db_client.create_class(
                SchoolClass(id=uuid4(), name=name, sections=cleaned_sections, created_by=admin.id)
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Class already exists") from e
        except Exception as e:
            logger.error(f"Error creating class '{name}'.", exc_info=True)
            raise PersistenceError("Failed to create class", str(e)) from e

        logger.info(f"Class '{name}' created with sections {cleaned_sections}.")
        (schedule or run_in_background)(self.notify_new_class, created)
        return created

    async def notify_new_class(self, school_class: SchoolClass):
        try:
            await self.hub.publish_new_class(class_payload(school_class))
        except Exception as e:
            logger.error(f"Failed to broadcast new_class '{school_class.name}': {e}", exc_info=True)

    async def list_classes(self) -> List[SchoolClass]:
        return await self.db_client.list_classes()

    async def delete_class(self, class_id: str):
        try:
            class_uuid = UUID(class_id)
        except ValueError:
            raise NotFoundError("Class not found")

        status = await self.db_client.delete_class(class_uuid)
        if affected_rows(status) == 0:
            raise NotFoundError("Class not found")
        logger.info(f"Class {class_uuid} deleted.")

    async def list_section_students(self, class_name: str, section: str) -> List[Student]:
        return await self.db_client.list_students(class_name, section)
