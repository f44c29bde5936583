import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from pydantic import ValidationError

from .schemas.envelope import Envelope
from .schemas.user import (
    AdminLoginRequest,
    AuthData,
    LoginRequest,
    MeData,
    RegisterRequest,
    StudentAuthData,
    StudentLoginRequest,
    StudentResponse,
    Token,
    TokenData,
    UserResponse,
)
from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, ROLE_TEACHER
from ..services.errors import ServiceError
from ..services.user_service import UserService
from .dependencies import get_db_client, get_user_service
from .utilities.errors import AppHTTPException, to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

# --- Router and Security Setup ---
router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


# --- Helpers ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a signed JWT carrying the given claims and an expiry."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_token(user: User) -> str:
    """Teachers get only the id claim; admins and students also carry their role."""
    claims = {"id": str(user.id)}
    if user.role != ROLE_TEACHER:
        claims["role"] = user.role
    return create_access_token(claims)


# --- Dependency for Protected Routes ---
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db_client: AsyncPostgresClient = Depends(get_db_client)
) -> User:
    """
    Decodes and validates the bearer token and loads the user it names.
    Every failure, whatever its cause, is the same 401.
    """
    credentials_exception = AppHTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    user = await db_client.get_user_by_id(token_data.id)
    if user is None or not user.is_active:
        logger.warning(f"Token for unknown or deactivated user {token_data.id} rejected.")
        raise credentials_exception
    if token_data.role is not None and token_data.role != user.role:
        logger.warning(f"Token role '{token_data.role}' no longer matches user {user.id}.")
        raise credentials_exception
    return user


# --- API Endpoints ---

@router.post("/register", response_model=Envelope[AuthData], status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def register(request: Request, register_request: RegisterRequest, service: UserService = Depends(get_user_service)):
    try:
        user = await service.register_teacher(
            name=register_request.name,
            email=register_request.email,
            phone_number=register_request.phone_number,
            password=register_request.password,
            masjid_info=register_request.masjid_info,
        )
    except ServiceError as e:
        raise to_http_exception(e)
    data = AuthData(user=UserResponse.model_validate(user), token=issue_token(user))
    return Envelope[AuthData](message="User registered successfully", data=data)


@router.post("/login", response_model=Envelope[AuthData])
@limiter.limit("20/minute")
async def login(request: Request, login_request: LoginRequest, service: UserService = Depends(get_user_service)):
    try:
        user = await service.authenticate(login_request.email, login_request.password)
    except ServiceError as e:
        raise to_http_exception(e)
    logger.info(f"User {user.id} logged in.")
    data = AuthData(user=UserResponse.model_validate(user), token=issue_token(user))
    return Envelope[AuthData](message="Login successful", data=data)


@router.post("/student-login", response_model=Envelope[StudentAuthData])
@limiter.limit("20/minute")
async def student_login(request: Request, login_request: StudentLoginRequest, service: UserService = Depends(get_user_service)):
    try:
        user, student = await service.authenticate_student(login_request.student_id, login_request.password)
    except ServiceError as e:
        raise to_http_exception(e)
    logger.info(f"Student '{student.student_id}' logged in.")
    data = StudentAuthData(
        user=UserResponse.model_validate(user),
        student=StudentResponse.model_validate(student),
        token=issue_token(user),
    )
    return Envelope[StudentAuthData](message="Student login successful", data=data)


@router.post("/admin-login", response_model=Envelope[AuthData])
@limiter.limit("20/minute")
async def admin_login(request: Request, login_request: AdminLoginRequest, service: UserService = Depends(get_user_service)):
    try:
        admin = await service.authenticate_admin(login_request.username, login_request.password)
    except ServiceError as e:
        raise to_http_exception(e)
    logger.info(f"Admin {admin.id} logged in.")
    data = AuthData(user=UserResponse.model_validate(admin), token=issue_token(admin))
    return Envelope[AuthData](message="Admin login successful", data=data)


@router.post("/token", response_model=Token)
@limiter.limit("20/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: UserService = Depends(get_user_service)
):
    """Standard OAuth2 endpoint for Swagger UI; the username is the account email."""
    try:
        user = await service.authenticate(form_data.username, form_data.password)
    except ServiceError as e:
        raise to_http_exception(e)
    return Token(access_token=issue_token(user))


@router.get("/me", response_model=Envelope[MeData])
async def read_me(user: User = Depends(get_current_user)):
    return Envelope[MeData](data=MeData(user=UserResponse.model_validate(user)))
