import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings

from exam_scheduling.entities import Allocation, Exam, Room
from exam_scheduling.services.conflicts import conflict_groups, interval_for_allocation
from exam_scheduling.services.export import first_allocation_by_exam
from exam_scheduling.utils.jalali import to_jalali_text
from exam_scheduling.utils.temporal import format_clock

OVER_CAPACITY = "exceeded"
UNDER_UTILIZED = "underutilized"
WITHIN_CAPACITY = "ok"
UNDER_UTILIZED_BELOW = 30
PEAK_HOUR_COUNT = 3


def _percent(part: float, whole: float) -> int:
    # Half-up rounding so 12.5% reads as 13%.
    return int(math.floor(part / whole * 100 + 0.5))


def _clock_from_minutes(minutes: int) -> str:
    minutes %= 24 * 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def conflict_report(
    exams: Iterable[Exam],
    allocations: Iterable[Allocation],
    rooms: Iterable[Room],
) -> List[Dict[str, Any]]:
    exams_by_id = {exam.id: exam for exam in exams}
    rooms_by_id = {room.id: room for room in rooms}

    report = []
    for group in conflict_groups(allocations, exams_by_id):
        room = rooms_by_id.get(group.room_id)
        members = []
        for allocation in group.allocations:
            exam = exams_by_id.get(allocation.exam_id)
            interval = interval_for_allocation(allocation, exam)
            members.append(
                {
                    "allocation": allocation.id,
                    "exam": allocation.exam_id,
                    "title": exam.title if exam else None,
                    "course_code": exam.course_code if exam else None,
                    "start": format_clock(allocation.start_time),
                    "end": _clock_from_minutes(interval.end_minute),
                    "students": exam.expected_students if exam and exam.expected_students is not None else allocation.allocated_seats,
                }
            )
        report.append(
            {
                "room": {"id": group.room_id, "name": room.name if room else None},
                "date": group.date.isoformat(),
                "date_jalali": to_jalali_text(group.date),
                "allocations": members,
            }
        )
    return report


def capacity_report(
    exams: Iterable[Exam],
    allocations: Iterable[Allocation],
    rooms: Iterable[Room],
) -> List[Dict[str, Any]]:
    """Per-exam seat usage of the allocated room, fullest first."""
    rooms_by_id = {room.id: room for room in rooms}
    allocation_for = first_allocation_by_exam(allocations)

    rows = []
    for exam in exams:
        allocation = allocation_for.get(exam.id)
        if allocation is not None and allocation.allocated_seats is not None:
            students = allocation.allocated_seats
        else:
            students = exam.expected_students or 0
        room = rooms_by_id.get(allocation.room_id) if allocation else None
        capacity = room.capacity if room else None

        usage = _percent(students, capacity) if capacity else None
        if usage is None:
            status = None
        elif usage > 100:
            status = OVER_CAPACITY
        elif usage < UNDER_UTILIZED_BELOW:
            status = UNDER_UTILIZED
        else:
            status = WITHIN_CAPACITY

        rows.append(
            {
                "exam": exam.id,
                "title": exam.title,
                "course_code": exam.course_code,
                "room": room.name if room else None,
                "students": students,
                "capacity": capacity,
                "usage_percent": usage,
                "status": status,
            }
        )

    rows.sort(key=lambda row: (row["usage_percent"] is None, -(row["usage_percent"] or 0)))
    return rows


def utilization_report(
    allocations: Iterable[Allocation],
    rooms: Iterable[Room],
    working_days: Optional[int] = None,
    hours_per_day: Optional[int] = None,
    exams: Optional[Iterable[Exam]] = None,
) -> List[Dict[str, Any]]:
    """
    Per-room share of the term's working hours taken by exams.

    The horizon is ``working_days * hours_per_day`` hours. Peak hours are the
    (up to three) start hours with the most exams.
    """
    working_days = working_days if working_days is not None else settings.EXAM_REPORT_WORKING_DAYS
    hours_per_day = hours_per_day if hours_per_day is not None else settings.EXAM_REPORT_HOURS_PER_DAY
    available_hours = working_days * hours_per_day
    exams_by_id = {exam.id: exam for exam in exams or []}

    by_room: Dict[int, List[Allocation]] = {}
    for allocation in allocations:
        if allocation.room_id is not None and allocation.start_at is not None:
            by_room.setdefault(allocation.room_id, []).append(allocation)

    rows = []
    for room in rooms:
        room_allocations = by_room.get(room.id, [])
        minutes = 0
        starts = Counter()
        for allocation in room_allocations:
            interval = interval_for_allocation(allocation, exams_by_id.get(allocation.exam_id))
            minutes += interval.end_minute - interval.start_minute
            starts[f"{allocation.start_time.hour:02d}:00"] += 1

        allocated_hours = round(minutes / 60, 2)
        peaks = sorted(starts.items(), key=lambda item: (-item[1], item[0]))[:PEAK_HOUR_COUNT]
        rows.append(
            {
                "room": {"id": room.id, "name": room.name, "capacity": room.capacity},
                "exam_count": len(room_allocations),
                "allocated_hours": allocated_hours,
                "usage_percent": _percent(allocated_hours, available_hours) if available_hours else 0,
                "empty_hours": max(0, round(available_hours - allocated_hours, 2)),
                "peak_hours": [hour for hour, _ in peaks],
            }
        )

    rows.sort(key=lambda row: -row["usage_percent"])
    return rows
