# hifz/backend/modules/assignment_builder.py

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from ..models.assignment_models import Assignment, AssignmentPayload, SurahDescriptor

DEFAULT_TITLE = "Assignment"
DEFAULT_TYPE = "lesson"
ASSIGNED_STATUS = "assigned"


class AssignmentPayloadError(ValueError):
    """Raised when an assignment payload cannot be turned into a canonical record."""
    pass


def _present(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


def surah_label(name_or_code: Union[int, str]) -> str:
    """
    Formats a surah name or numeric code for display, e.g. 2 -> 'Surah 2', 'Baqarah' -> 'Surah Baqarah'.
    Values that already carry the 'Surah' prefix are returned unchanged.
    """
    text = str(name_or_code).strip()
    if text.lower().startswith("surah "):
        return text
    return f"Surah {text}"


def _verse_suffix(start_verse: Optional[int], end_verse: Optional[int]) -> str:
    if start_verse is not None and end_verse is not None:
        return f" ({start_verse}-{end_verse})"
    if start_verse is not None or end_verse is not None:
        return f" ({start_verse if start_verse is not None else end_verse})"
    return ""


def _synthesized_surah_name(payload: AssignmentPayload) -> Optional[str]:
    """Builds a surah name from a numeric start code or the single 'selected surah' value."""
    if payload.start_surah and payload.start_surah.number is not None:
        return surah_label(payload.start_surah.number)
    if _present(payload.selected_surah):
        return surah_label(payload.selected_surah)
    return None


def resolve_title(payload: AssignmentPayload) -> str:
    if _present(payload.title):
        return payload.title.strip()

    verses = _verse_suffix(payload.start_verse, payload.end_verse)
    if payload.start_surah and _present(payload.start_surah.name):
        return f"{surah_label(payload.start_surah.name)}{verses}"

    synthesized = _synthesized_surah_name(payload)
    if synthesized:
        return f"{synthesized}{verses}"

    return DEFAULT_TITLE


def resolve_type(payload: AssignmentPayload) -> str:
    if _present(payload.activity_type):
        return payload.activity_type.strip()
    if _present(payload.type):
        return payload.type.strip()
    return DEFAULT_TYPE


def _selected_surah_number(selected: Union[int, str]) -> Optional[int]:
    if isinstance(selected, int):
        return selected
    text = str(selected).strip()
    return int(text) if text.isdigit() else None


def resolve_surah(payload: AssignmentPayload, which: str, title: str) -> SurahDescriptor:
    """
    Resolves the start or end surah descriptor:
    explicit name > 'Surah {code}' > 'Surah {selectedSurah}' > the resolved title.
    """
    ref = payload.start_surah if which == "start" else payload.end_surah

    if ref and _present(ref.name):
        return SurahDescriptor(name=ref.name.strip(), number=ref.number)
    if ref and ref.number is not None:
        return SurahDescriptor(name=surah_label(ref.number), number=ref.number)
    if _present(payload.selected_surah):
        return SurahDescriptor(
            name=surah_label(payload.selected_surah),
            number=_selected_surah_number(payload.selected_surah)
        )
    return SurahDescriptor(name=title)


def build_assignment(payload: AssignmentPayload, teacher_id: Optional[str] = None, now: Optional[datetime] = None) -> Assignment:
    """
    Normalizes any supported payload shape into one canonical Assignment.

    Args:
        payload: The request payload. Only the student id is mandatory.
        teacher_id: Fallback teacher reference when the payload carries none.
        now: Normalization time; defaults to the current UTC time.

    Raises:
        AssignmentPayloadError: If the payload has no student id.
    """
    if not _present(payload.student_id):
        raise AssignmentPayloadError("Student ID is required")

    title = resolve_title(payload)
    created_at = (now or datetime.now(timezone.utc)).isoformat()

    return Assignment(
        student_id=payload.student_id.strip(),
        teacher_id=payload.teacher_id if _present(payload.teacher_id) else teacher_id,
        title=title,
        type=resolve_type(payload),
        description=payload.description,
        due_date=payload.due_date if _present(payload.due_date) else None,
        start_surah=resolve_surah(payload, "start", title),
        end_surah=resolve_surah(payload, "end", title),
        start_verse=payload.start_verse,
        end_verse=payload.end_verse,
        status=ASSIGNED_STATUS,
        created_at=created_at
    )


# ===== Status filtering shared by every read path =====

def normalize_status(status: Optional[str]) -> Optional[str]:
    """Case-folds a status for comparison. Blank values mean 'no filter'."""
    if status is None:
        return None
    normalized = status.strip().casefold()
    return normalized or None


def filter_by_status(assignments: Iterable[Assignment], status: Optional[str]) -> List[Assignment]:
    wanted = normalize_status(status)
    if wanted is None:
        return list(assignments)
    return [a for a in assignments if normalize_status(a.status) == wanted]
