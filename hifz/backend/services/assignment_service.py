import logging
from typing import Any, Callable, List, Optional

from ..db.db_client import AsyncPostgresClient
from ..models.assignment_models import Assignment, AssignmentPayload
from ..models.db_models import User, Homework, ROLE_STUDENT
from ..modules.assignment_builder import AssignmentPayloadError, build_assignment, filter_by_status
from ..realtime.hub import RealtimeHub
from ..tasks.background import run_in_background
from .errors import AuthorizationError, InvalidRequestError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

# schedule(func, *args): runs func(*args) after the caller has returned, e.g. BackgroundTasks.add_task.
Scheduler = Callable[..., Any]


class AssignmentService:
    """
    Creates assignments as the student's latest-assignment snapshot and notifies the student's room.
    """
    def __init__(self, db_client: AsyncPostgresClient, hub: RealtimeHub):
        self.db_client = db_client
        self.hub = hub

    async def create_assignment(self, payload: AssignmentPayload, teacher: User, schedule: Optional[Scheduler] = None) -> Assignment:
        """
        Normalizes the payload and replaces the student's snapshot with it.
        The realtime notification is scheduled only after the write succeeded; its outcome
        never affects the result of this call.
        """
        try:
            assignment = build_assignment(payload, teacher_id=str(teacher.id))
        except AssignmentPayloadError as e:
            raise InvalidRequestError(str(e)) from e

        try:
            replaced = await self.db_client.replace_latest_assignment(
                assignment.student_id, assignment.model_dump(by_alias=True, mode="json")
            )
        except Exception as e:
            logger.error(f"Error saving assignment for student '{assignment.student_id}'.", exc_info=True)
            raise PersistenceError("Failed to create assignment", str(e)) from e

        if not replaced:
            raise NotFoundError("Student not found")

        logger.info(f"Assignment '{assignment.title}' set as latest for student '{assignment.student_id}'.")
        (schedule or run_in_background)(self.notify_new_assignment, assignment.student_id, assignment)
        return assignment

    async def notify_new_assignment(self, student_id: str, assignment: Assignment):
        try:
            delivered = await self.hub.publish_new_assignment(student_id, assignment)
            logger.info(f"new_task for student '{student_id}' sent to {delivered} connection(s).")
        except Exception as e:
            logger.error(f"Failed to publish new_task for student '{student_id}': {e}", exc_info=True)

    async def get_latest_assignments(self, student_id: str, status: Optional[str] = None) -> List[Assignment]:
        """Zero or one assignment: the student's snapshot, optionally filtered by status."""
        student = await self.db_client.get_student(student_id)
        if student is None:
            raise NotFoundError("Student not found")
        snapshot = [student.latest_assignment] if student.latest_assignment else []
        return filter_by_status(snapshot, status)

    async def ensure_can_view(self, viewer: User, student_id: str):
        """Students may only read their own assignments; teachers and admins may read any."""
        if viewer.role != ROLE_STUDENT:
            return
        own = await self.db_client.get_student_by_user_id(viewer.id)
        if own is None or own.student_id != student_id:
            raise AuthorizationError("You can only view your own assignments.")

    async def get_homework_records(self, student_id: str) -> List[Homework]:
        student = await self.db_client.get_student(student_id)
        if student is None:
            raise NotFoundError("Student not found")
        return await self.db_client.get_homework_for_student(student.id)
