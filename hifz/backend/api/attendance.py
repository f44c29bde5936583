from fastapi import APIRouter, Depends, HTTPException, Request, status

from .schemas.envelope import Envelope
from .schemas.user import StudentListData, StudentResponse
from ..models.db_models import User, ROLE_ADMIN, ROLE_TEACHER
from ..services.class_service import ClassService
from .auth import get_current_user
from .dependencies import get_class_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/attendance", tags=["Attendance"])


def _verify_staff_role(user: User):
    if user.role not in (ROLE_TEACHER, ROLE_ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This operation is only valid for teachers and admins.")


@router.get("/students/{class_name}/{section}", response_model=Envelope[StudentListData], summary="List the active students of a class section")
@limiter.limit("60/minute")
async def get_section_students(request: Request, class_name: str, section: str, user: User = Depends(get_current_user), service: ClassService = Depends(get_class_service)):
    _verify_staff_role(user)
    students = await service.list_section_students(class_name, section)
    data = StudentListData(students=[StudentResponse.model_validate(s) for s in students])
    return Envelope[StudentListData](data=data)
