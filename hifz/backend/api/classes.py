import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from typing import List

from .schemas.classes import ClassCreateRequest, ClassResponse
from .schemas.envelope import Envelope
from ..models.db_models import User, ROLE_ADMIN
from ..services.class_service import ClassService
from ..services.errors import ServiceError
from .auth import get_current_user
from .dependencies import get_class_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/classes", tags=["Classes"])


def _verify_admin_role(user: User):
    if user.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


@router.post("", response_model=Envelope[ClassResponse], status_code=status.HTTP_201_CREATED, summary="Create a class and broadcast it")
@limiter.limit("30/minute")
async def create_class(request: Request, create_request: ClassCreateRequest, background_tasks: BackgroundTasks, user: User = Depends(get_current_user), service: ClassService = Depends(get_class_service)):
    _verify_admin_role(user)
    try:
        created = await service.create_class(
            admin=user,
            name=create_request.name,
            sections=create_request.sections,
            schedule=background_tasks.add_task,
        )
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope[ClassResponse](message="Class created successfully", data=ClassResponse.model_validate(created))


@router.get("", response_model=Envelope[List[ClassResponse]], summary="List classes, newest first")
@limiter.limit("60/minute")
async def list_classes(request: Request, user: User = Depends(get_current_user), service: ClassService = Depends(get_class_service)):
    _verify_admin_role(user)
    classes = await service.list_classes()
    return Envelope[List[ClassResponse]](data=[ClassResponse.model_validate(c) for c in classes])


@router.delete("/{class_id}", response_model=Envelope, summary="Delete a class")
@limiter.limit("30/minute")
async def delete_class(request: Request, class_id: str, user: User = Depends(get_current_user), service: ClassService = Depends(get_class_service)):
    _verify_admin_role(user)
    try:
        await service.delete_class(class_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Envelope(message="Class deleted successfully")
