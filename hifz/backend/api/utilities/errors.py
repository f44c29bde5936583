from typing import Dict, Optional
from fastapi import HTTPException

from ...services.errors import ServiceError


class AppHTTPException(HTTPException):
    """HTTPException that also carries the raw error detail, shown only outside production."""

    def __init__(self, status_code: int, detail: str, error: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error = error


def to_http_exception(e: ServiceError) -> AppHTTPException:
    return AppHTTPException(status_code=e.status_code, detail=e.message, error=e.error)
