from dataclasses import dataclass
from datetime import date, time
from io import BytesIO
from typing import Dict, Iterable, List, Optional

import pandas as pd

from exam_scheduling.constants import EXPORT_SHEET_NAME
from exam_scheduling.entities import Allocation, Exam, Room
from exam_scheduling.utils.equivalents import EXPORT_COLUMNS
from exam_scheduling.utils.jalali import to_jalali_text
from exam_scheduling.utils.temporal import format_clock

EXPORT_LANGUAGES = ("fa", "en")


@dataclass
class Schedule:
    date: "Optional[date]" = None
    start: Optional[time] = None
    duration_minutes: Optional[int] = None
    room_id: Optional[int] = None
    room_name: Optional[str] = None


def _rooms_by_id(rooms: Iterable[Room]) -> Dict[int, Room]:
    return {room.id: room for room in rooms if room.id is not None}


def resolve_schedule(exam: Exam, allocation: Optional[Allocation], rooms: Iterable[Room]) -> Schedule:
    """
    Where and when an exam takes place.

    The allocation is authoritative. Date, time and location stored on the
    exam itself are only read when the exam has no allocation.
    """
    rooms_by_id = rooms if isinstance(rooms, dict) else _rooms_by_id(rooms)

    if allocation is not None and allocation.start_at is not None:
        room = rooms_by_id.get(allocation.room_id)
        return Schedule(
            date=allocation.date,
            start=allocation.start_time,
            duration_minutes=allocation.duration_minutes or exam.duration_minutes,
            room_id=allocation.room_id,
            room_name=room.name if room else (str(allocation.room_id) if allocation.room_id else None),
        )

    legacy = exam.legacy_schedule
    if legacy is None:
        return Schedule(duration_minutes=exam.duration_minutes)

    room_id = None
    room_name = legacy.location
    if legacy.location and legacy.location.isdigit():
        room = rooms_by_id.get(int(legacy.location))
        if room:
            room_id, room_name = room.id, room.name
    return Schedule(
        date=legacy.date,
        start=legacy.start,
        duration_minutes=exam.duration_minutes,
        room_id=room_id,
        room_name=room_name,
    )


def first_allocation_by_exam(allocations: Iterable[Allocation]) -> Dict[int, Allocation]:
    first: Dict[int, Allocation] = {}
    for allocation in allocations:
        if allocation.exam_id is not None and allocation.exam_id not in first:
            first[allocation.exam_id] = allocation
    return first


def export_labels(language: str = "fa") -> List[str]:
    if language not in EXPORT_LANGUAGES:
        raise ValueError(f"Unsupported export language '{language}'. Use one of: {', '.join(EXPORT_LANGUAGES)}.")
    return [labels[language] for _, labels in EXPORT_COLUMNS]


def build_export_rows(
    exams: Iterable[Exam],
    allocations: Iterable[Allocation],
    rooms: Iterable[Room],
    language: str = "fa",
) -> List[Dict[str, object]]:
    labels = dict(zip([key for key, _ in EXPORT_COLUMNS], export_labels(language)))
    rooms_by_id = _rooms_by_id(rooms)
    allocation_for = first_allocation_by_exam(allocations)

    rows = []
    for exam in exams:
        schedule = resolve_schedule(exam, allocation_for.get(exam.id), rooms_by_id)
        values = {
            "title": exam.title,
            "course_code": exam.course_code or "",
            "date": schedule.date.isoformat() if schedule.date else "",
            "date_jalali": to_jalali_text(schedule.date),
            "time": format_clock(schedule.start) or "",
            "duration_minutes": schedule.duration_minutes if schedule.duration_minutes is not None else "",
            "expected_students": exam.expected_students if exam.expected_students is not None else "",
            "location": schedule.room_name or "",
        }
        rows.append({labels[key]: value for key, value in values.items()})
    return rows


def export_workbook(
    exams: Iterable[Exam],
    allocations: Iterable[Allocation],
    rooms: Iterable[Room],
    language: str = "fa",
) -> bytes:
    """Write one row per exam to a single-sheet xlsx workbook."""
    rows = build_export_rows(exams, allocations, rooms, language)
    df = pd.DataFrame(rows, columns=export_labels(language))

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=EXPORT_SHEET_NAME, index=False)
        if language == "fa":
            writer.sheets[EXPORT_SHEET_NAME].sheet_view.rightToLeft = True
    return buffer.getvalue()
