# hifz/backend/api/schemas/envelope.py
from pydantic import BaseModel, model_serializer
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """
    Response envelope shared by every route: {success, message?, data?, error?}.
    Top-level keys that are None are left out; None values inside data are kept.
    """
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    error: Optional[str] = None

    @model_serializer(mode="wrap")
    def _omit_empty_keys(self, handler):
        return {key: value for key, value in handler(self).items() if value is not None}
