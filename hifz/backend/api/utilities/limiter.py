# hifz/backend/api/utilities/limiter.py

from fastapi import Request
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings


def get_limiter_key(request: Request) -> str:
    """
    Rate limit key: the user id from a bearer token when one can be decoded, else the client IP.
    Expiry is ignored here; get_current_user rejects expired tokens separately.
    """
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer ") and settings.SECRET_KEY:
        token = auth_header.split(" ", 1)[1]
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            user_id = payload.get("id")
            if user_id:
                return f"user:{user_id}"
        except jwt.PyJWTError:
            pass

    return get_remote_address(request)


# Storage comes from RATE_LIMITER_REDIS_URL, e.g. "redis://localhost:6379/1"; in-memory by default.
limiter = Limiter(key_func=get_limiter_key, storage_uri=settings.RATE_LIMITER_REDIS_URL)
