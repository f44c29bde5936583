import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from typing import Optional

from .schemas.assignment import AssignmentData, AssignmentListData, HomeworkListData, HomeworkResponse
from .schemas.envelope import Envelope
from ..models.assignment_models import AssignmentPayload
from ..models.db_models import User, ROLE_ADMIN, ROLE_TEACHER
from ..services.assignment_service import AssignmentService
from ..services.errors import ServiceError
from .auth import get_current_user
from .dependencies import get_assignment_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/homework", tags=["Homework"])

# --- Helpers ---

def _verify_staff_role(user: User):
    if user.role not in (ROLE_TEACHER, ROLE_ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This operation is only valid for teachers and admins.")


def _require_student_id(student_id: Optional[str]) -> str:
    if student_id is None or not student_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Student ID is required")
    return student_id.strip()


async def _latest_assignments(service: AssignmentService, viewer: User, student_id: str, status_filter: Optional[str]) -> Envelope[AssignmentListData]:
    try:
        await service.ensure_can_view(viewer, student_id)
        assignments = await service.get_latest_assignments(student_id, status_filter)
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope[AssignmentListData](data=AssignmentListData(assignments=assignments))


# === Assignment Creation ===

@router.post("", response_model=Envelope[AssignmentData], status_code=status.HTTP_201_CREATED, summary="Assign homework as the student's latest assignment")
@limiter.limit("60/minute")
async def create_assignment(request: Request, payload: AssignmentPayload, background_tasks: BackgroundTasks, user: User = Depends(get_current_user), service: AssignmentService = Depends(get_assignment_service)):
    _verify_staff_role(user)
    try:
        assignment = await service.create_assignment(payload, teacher=user, schedule=background_tasks.add_task)
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope[AssignmentData](message="Assignment created successfully", data=AssignmentData(assignment=assignment))


# === Latest Assignment Reads ===

@router.get("/student/{student_id}", response_model=Envelope[AssignmentListData], summary="Latest assignment of a student")
@limiter.limit("120/minute")
async def get_student_assignments(request: Request, student_id: str, status_filter: Optional[str] = Query(None, alias="status"), user: User = Depends(get_current_user), service: AssignmentService = Depends(get_assignment_service)):
    return await _latest_assignments(service, user, student_id, status_filter)


@router.get("/student-assignments", response_model=Envelope[AssignmentListData], summary="Latest assignment of a student, by query parameter")
@limiter.limit("120/minute")
async def get_student_assignments_by_query(request: Request, student_id: Optional[str] = Query(None, alias="studentId"), status_filter: Optional[str] = Query(None, alias="status"), user: User = Depends(get_current_user), service: AssignmentService = Depends(get_assignment_service)):
    return await _latest_assignments(service, user, _require_student_id(student_id), status_filter)


# === Graded Homework Records ===

@router.get("", response_model=Envelope[HomeworkListData], summary="Graded homework records of a student")
@limiter.limit("60/minute")
async def get_homework(request: Request, student_id: Optional[str] = Query(None, alias="studentId"), user: User = Depends(get_current_user), service: AssignmentService = Depends(get_assignment_service)):
    student_id = _require_student_id(student_id)
    try:
        await service.ensure_can_view(user, student_id)
        records = await service.get_homework_records(student_id)
    except ServiceError as e:
        raise to_http_exception(e)
    data = HomeworkListData(homework=[HomeworkResponse.model_validate(r) for r in records])
    return Envelope[HomeworkListData](data=data)
