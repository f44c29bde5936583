import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import Optional

from .schemas.envelope import Envelope
from .schemas.user import (
    AddStudentRequest,
    AddTeacherRequest,
    AddedStudentData,
    AuthData,
    DashboardStats,
    LoginRequest,
    MeData,
    StudentResponse,
    UpdateCredentialsRequest,
    UserListData,
    UserResponse,
)
from ..models.db_models import User, Role, ROLE_ADMIN
from ..services.errors import ServiceError
from ..services.user_service import UserService
from .auth import get_current_user, issue_token
from .dependencies import get_user_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Endpoints"])

# --- Helpers ---

def _verify_admin_role(user: User):
    if user.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied. Admin role required.")


# === Admin Session ===

@router.post("/login", response_model=Envelope[AuthData])
@limiter.limit("20/minute")
async def admin_login(request: Request, login_request: LoginRequest, service: UserService = Depends(get_user_service)):
    try:
        admin = await service.admin_login(login_request.email, login_request.password)
    except ServiceError as e:
        raise to_http_exception(e)
    data = AuthData(user=UserResponse.model_validate(admin), token=issue_token(admin))
    return Envelope[AuthData](message="Login successful", data=data)


@router.put("/update-credentials", response_model=Envelope[MeData])
@limiter.limit("5/minute")
async def update_credentials(request: Request, update_request: UpdateCredentialsRequest, user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    _verify_admin_role(user)
    try:
        updated = await service.update_admin_credentials(
            admin=user,
            old_username=update_request.old_username,
            old_password=update_request.old_password,
            new_username=update_request.new_username,
            new_password=update_request.new_password,
        )
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope[MeData](message="Admin credentials updated successfully", data=MeData(user=UserResponse.model_validate(updated)))


@router.get("/dashboard-stats", response_model=Envelope[DashboardStats])
@limiter.limit("60/minute")
async def dashboard_stats(request: Request, user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    _verify_admin_role(user)
    stats = await service.dashboard_stats()
    return Envelope[DashboardStats](data=DashboardStats(**stats))


# === Account Management ===

@router.post("/add-teacher", response_model=Envelope[MeData], status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def add_teacher(request: Request, teacher_request: AddTeacherRequest, user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    _verify_admin_role(user)
    try:
        teacher = await service.add_teacher(
            name=teacher_request.name,
            email=teacher_request.email,
            phone_number=teacher_request.phone_number,
            password=teacher_request.password,
        )
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope[MeData](message="Teacher added successfully", data=MeData(user=UserResponse.model_validate(teacher)))


@router.post("/add-student", response_model=Envelope[AddedStudentData], status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def add_student(request: Request, student_request: AddStudentRequest, user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    _verify_admin_role(user)
    info = student_request.student_info.model_dump(by_alias=True) if student_request.student_info else {}
    try:
        student_user, student = await service.add_student(
            admin=user,
            name=student_request.name,
            student_id=student_request.phone_number,
            password=student_request.password,
            student_info=info,
        )
    except ServiceError as e:
        raise to_http_exception(e)
    data = AddedStudentData(user=UserResponse.model_validate(student_user), student=StudentResponse.model_validate(student))
    return Envelope[AddedStudentData](message="Student added successfully", data=data)


@router.get("/users", response_model=Envelope[UserListData])
@limiter.limit("60/minute")
async def list_users(
    request: Request,
    role: Optional[Role] = None,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    _verify_admin_role(user)
    result = await service.list_users(role, page, limit)
    result["users"] = [UserResponse.model_validate(u) for u in result["users"]]
    return Envelope[UserListData](data=UserListData(**result))


@router.delete("/users/{user_id}", response_model=Envelope)
@limiter.limit("30/minute")
async def delete_user(request: Request, user_id: str, user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    _verify_admin_role(user)
    try:
        await service.deactivate_user(actor=user, user_id=user_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope(message="User deleted successfully")
