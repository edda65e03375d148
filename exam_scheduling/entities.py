"""
Plain records for the objects owned by the examboard API.

The API is not always consistent about shapes (ids as strings, foreign keys as
nested objects, datetimes wrapped as ``{"iso": ..., "jalali": ...}``), so each
record has a forgiving ``from_api`` constructor.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import Any, Dict, List, Optional

from django.utils import dateparse

from exam_scheduling.utils.temporal import (
    coerce_gregorian_date,
    coerce_jalali_date,
    coerce_time,
    format_clock,
    minute_of_day,
)


def _unwrap(value: Any) -> Any:
    if isinstance(value, dict):
        if "iso" in value:
            return value.get("iso")
        if "id" in value:
            return value.get("id")
    return value


def _as_int(value: Any) -> Optional[int]:
    value = _unwrap(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_api_datetime(value: Any) -> Optional[datetime]:
    """Read an API timestamp as an aware UTC datetime, keeping the wall-clock digits."""
    value = _unwrap(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = dateparse.parse_datetime(text)
        except ValueError:
            parsed = None
        if parsed is None:
            only_date = coerce_gregorian_date(text)
            if only_date is None:
                return None
            parsed = datetime.combine(only_date, time(0))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt_timezone.utc)
    return parsed.astimezone(dt_timezone.utc)


@dataclass
class Term:
    id: int
    name: str
    code: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_archived: bool = False

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Term":
        return cls(
            id=_as_int(payload.get("id")),
            name=_as_text(payload.get("name")) or "",
            code=_as_text(payload.get("code")),
            start_date=coerce_gregorian_date(_unwrap(payload.get("start_date"))),
            end_date=coerce_gregorian_date(_unwrap(payload.get("end_date"))),
            is_archived=bool(payload.get("is_archived", False)),
        )


def active_terms(terms: List[Term]) -> List[Term]:
    return [term for term in terms if not term.is_archived]


@dataclass
class Room:
    id: int
    name: str
    capacity: int = 0
    category_id: Optional[int] = None
    category_name: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Room":
        category = payload.get("category")
        category_name = payload.get("category_name")
        if isinstance(category, dict):
            category_name = category_name or category.get("name")
        return cls(
            id=_as_int(payload.get("id")),
            name=_as_text(payload.get("name")) or "",
            capacity=_as_int(payload.get("capacity")) or 0,
            category_id=_as_int(category),
            category_name=_as_text(category_name),
        )


@dataclass
class LegacySchedule:
    """Date/time/location values stored directly on an exam by older data."""

    date: "Optional[date]" = None
    start: Optional[time] = None
    location: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> Optional["LegacySchedule"]:
        raw_date = payload.get("date")
        parsed_date = None
        if isinstance(raw_date, dict):
            parsed_date = coerce_gregorian_date(raw_date.get("iso")) or coerce_jalali_date(raw_date.get("jalali"))
        elif raw_date is not None:
            parsed_date = coerce_gregorian_date(raw_date) or coerce_jalali_date(raw_date)
        schedule = cls(
            date=parsed_date,
            start=coerce_time(payload.get("time")),
            location=_as_text(payload.get("location")),
        )
        if schedule.date is None and schedule.start is None and schedule.location is None:
            return None
        return schedule


@dataclass
class Exam:
    id: int
    title: str
    term_id: Optional[int]
    course_code: Optional[str] = None
    owner_id: Optional[int] = None
    expected_students: Optional[int] = None
    duration_minutes: Optional[int] = None
    legacy_schedule: Optional[LegacySchedule] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Exam":
        return cls(
            id=_as_int(payload.get("id")),
            title=_as_text(payload.get("title")) or "",
            term_id=_as_int(payload.get("term")),
            course_code=_as_text(payload.get("course_code")),
            owner_id=_as_int(payload.get("owner")),
            expected_students=_as_int(payload.get("expected_students")),
            duration_minutes=_as_int(payload.get("duration_minutes")),
            legacy_schedule=LegacySchedule.from_api(payload),
        )


@dataclass
class Allocation:
    id: Optional[int]
    exam_id: int
    room_id: Optional[int]
    start_at: Optional[datetime]
    end_at: Optional[datetime] = None
    allocated_seats: Optional[int] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Allocation":
        return cls(
            id=_as_int(payload.get("id")),
            exam_id=_as_int(payload.get("exam")),
            room_id=_as_int(payload.get("room")),
            start_at=parse_api_datetime(payload.get("start_at")),
            end_at=parse_api_datetime(payload.get("end_at")),
            allocated_seats=_as_int(payload.get("allocated_seats")),
        )

    @property
    def date(self) -> Optional[date]:
        return self.start_at.date() if self.start_at else None

    @property
    def start_time(self) -> Optional[time]:
        return self.start_at.time().replace(second=0, microsecond=0) if self.start_at else None

    @property
    def duration_minutes(self) -> Optional[int]:
        if self.start_at is None or self.end_at is None:
            return None
        return int((self.end_at - self.start_at) / timedelta(minutes=1))


@dataclass
class ParsedExamRecord:
    """One spreadsheet row after header resolution and temporal normalization."""

    title: str
    row_number: Optional[int] = None
    course_code: Optional[str] = None
    date: "Optional[date]" = None
    start: Optional[time] = None
    duration_minutes: Optional[int] = None
    expected_students: Optional[int] = None
    location: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.course_code or self.title

    @property
    def iso_date(self) -> Optional[str]:
        return self.date.isoformat() if self.date else None

    @property
    def time_text(self) -> Optional[str]:
        return format_clock(self.start)

    @property
    def start_minute(self) -> Optional[int]:
        return minute_of_day(self.start)
