# hifz/backend/models/assignment_models.py

from pydantic import Field, AliasChoices, field_validator, model_validator
from typing import Optional, Union

from .base import CamelModel


class SurahRef(CamelModel):
    """
    A surah reference as sent by the clients. Older clients send only a name, newer ones
    only the numeric code; a bare string or integer is accepted as shorthand.
    """
    name: Optional[str] = None
    number: Optional[int] = Field(None, validation_alias=AliasChoices("number", "code", "surahNumber"))

    @model_validator(mode="before")
    @classmethod
    def accept_shorthand(cls, value):
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return {"number": value}
        if isinstance(value, str):
            stripped = value.strip()
            return {"number": int(stripped)} if stripped.isdigit() else {"name": stripped}
        return value


class AssignmentPayload(CamelModel):
    """Every historically supported shape of an assignment-creation request."""
    student_id: Optional[str] = None
    teacher_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    activity_type: Optional[str] = None
    type: Optional[str] = None
    selected_surah: Optional[Union[int, str]] = None
    start_surah: Optional[SurahRef] = None
    end_surah: Optional[SurahRef] = None
    start_verse: Optional[int] = None
    end_verse: Optional[int] = None

    @field_validator("student_id", "teacher_id", "due_date", mode="before")
    @classmethod
    def coerce_to_string(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


class SurahDescriptor(CamelModel):
    name: str
    number: Optional[int] = None


class Assignment(CamelModel):
    """
    The canonical assignment record, embedded as the student's latest-assignment snapshot.
    """
    student_id: str = Field(..., description="Human-assigned identifier of the student")
    teacher_id: Optional[str] = Field(None, description="The user who assigned the homework")
    title: str
    type: str = Field(..., description="sabak, revision, manzil, new or the 'lesson' fallback")
    description: Optional[str] = None
    due_date: Optional[str] = None
    start_surah: SurahDescriptor
    end_surah: SurahDescriptor
    start_verse: Optional[int] = None
    end_verse: Optional[int] = None
    status: str = "assigned"
    created_at: str = Field(..., description="ISO-8601 time the record was normalized")
