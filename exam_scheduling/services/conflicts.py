from dataclasses import dataclass, field
from datetime import date, time
from typing import Dict, Iterable, List, Mapping, Optional

from django.conf import settings

from exam_scheduling.constants import DEFAULT_DURATION_MINUTES
from exam_scheduling.entities import Allocation, Exam, Room
from exam_scheduling.utils.temporal import minute_of_day


def default_duration() -> int:
    return getattr(settings, "EXAM_DEFAULT_DURATION_MINUTES", DEFAULT_DURATION_MINUTES)


@dataclass(frozen=True)
class Interval:
    date: "date"
    start_minute: int
    duration_minutes: Optional[int] = None

    @property
    def end_minute(self) -> int:
        duration = self.duration_minutes if self.duration_minutes is not None else default_duration()
        return self.start_minute + duration


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap test; intervals on different dates never overlap."""
    if a.date != b.date:
        return False
    return a.start_minute < b.end_minute and b.start_minute < a.end_minute


def interval_for_allocation(allocation: Allocation, exam: Optional[Exam] = None) -> Optional[Interval]:
    if allocation.start_at is None:
        return None
    duration = allocation.duration_minutes
    if duration is None or duration <= 0:
        duration = exam.duration_minutes if exam and exam.duration_minutes else None
    return Interval(
        date=allocation.date,
        start_minute=minute_of_day(allocation.start_time),
        duration_minutes=duration,
    )


def _index_exams(exams: Optional[Iterable[Exam]]) -> Dict[int, Exam]:
    if exams is None:
        return {}
    if isinstance(exams, Mapping):
        return dict(exams)
    return {exam.id: exam for exam in exams}


def seats_for(allocation: Allocation, exam: Optional[Exam]) -> int:
    if exam is not None and exam.expected_students is not None:
        return exam.expected_students
    return allocation.allocated_seats or 0


@dataclass
class CapacityInfo:
    total: int
    used: int
    available: int
    overlapping_count: int
    overlapping: List[Allocation] = field(default_factory=list)
    overbooked: int = 0

    def as_dict(self) -> Dict:
        return {
            "total": self.total,
            "used": self.used,
            "available": self.available,
            "overbooked": self.overbooked,
            "overlapping_count": self.overlapping_count,
            "overlapping": [
                {
                    "id": allocation.id,
                    "exam": allocation.exam_id,
                    "start_at": allocation.start_at.isoformat() if allocation.start_at else None,
                    "end_at": allocation.end_at.isoformat() if allocation.end_at else None,
                }
                for allocation in self.overlapping
            ],
        }


def available_capacity(
    room: Room,
    on_date: Optional[date],
    start: Optional[time],
    duration_minutes: Optional[int],
    allocations: Iterable[Allocation],
    exams: Optional[Iterable[Exam]] = None,
    exclude_exam_id: Optional[int] = None,
) -> CapacityInfo:
    """
    Seats left in ``room`` for a candidate slot.

    Every other exam allocated to the room in an overlapping slot uses up its
    expected student count (or the allocation's seats when the exam is not
    known). Without a date or start time the room is reported fully free.
    """
    total = room.capacity or 0
    if on_date is None or start is None:
        return CapacityInfo(total=total, used=0, available=total, overlapping_count=0)

    exams_by_id = _index_exams(exams)
    candidate = Interval(on_date, minute_of_day(start), duration_minutes)
    used = 0
    counted_exams = set()
    overlapping = []
    for allocation in allocations:
        if allocation.room_id != room.id:
            continue
        if exclude_exam_id is not None and allocation.exam_id == exclude_exam_id:
            continue
        exam = exams_by_id.get(allocation.exam_id)
        interval = interval_for_allocation(allocation, exam)
        if interval is None or not overlaps(candidate, interval):
            continue
        overlapping.append(allocation)
        if allocation.exam_id in counted_exams:
            continue
        counted_exams.add(allocation.exam_id)
        used += seats_for(allocation, exam)

    remaining = total - used
    return CapacityInfo(
        total=total,
        used=used,
        available=max(remaining, 0),
        overlapping_count=len(overlapping),
        overlapping=overlapping,
        overbooked=max(-remaining, 0),
    )


def find_conflicts(
    allocation: Allocation,
    allocations: Iterable[Allocation],
    exams: Optional[Iterable[Exam]] = None,
) -> List[Allocation]:
    """Allocations sharing ``allocation``'s room whose slot overlaps it."""
    if allocation.room_id is None:
        return []
    exams_by_id = _index_exams(exams)
    target = interval_for_allocation(allocation, exams_by_id.get(allocation.exam_id))
    if target is None:
        return []
    conflicts = []
    for other in allocations:
        if other is allocation or (other.id is not None and other.id == allocation.id):
            continue
        if other.room_id != allocation.room_id:
            continue
        interval = interval_for_allocation(other, exams_by_id.get(other.exam_id))
        if interval is not None and overlaps(target, interval):
            conflicts.append(other)
    return conflicts


@dataclass
class ConflictGroup:
    room_id: int
    date: "date"
    allocations: List[Allocation]


def _find(parent: List[int], i: int) -> int:
    while parent[i] != i:
        parent[i] = parent[parent[i]]
        i = parent[i]
    return i


def conflict_groups(
    allocations: Iterable[Allocation],
    exams: Optional[Iterable[Exam]] = None,
) -> List[ConflictGroup]:
    """
    Connected components of the overlap graph, per room.

    Two allocations are linked when they share a room and their slots
    overlap; chains (A-B, B-C) end up in one group even if A and C do not
    overlap directly. Singletons are not reported.
    """
    exams_by_id = _index_exams(exams)
    by_room: Dict[int, List[tuple]] = {}
    for allocation in allocations:
        if allocation.room_id is None:
            continue
        interval = interval_for_allocation(allocation, exams_by_id.get(allocation.exam_id))
        if interval is None:
            continue
        by_room.setdefault(allocation.room_id, []).append((allocation, interval))

    groups = []
    for room_id, members in by_room.items():
        parent = list(range(len(members)))
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                if overlaps(members[i][1], members[j][1]):
                    root_i, root_j = _find(parent, i), _find(parent, j)
                    if root_i != root_j:
                        parent[root_j] = root_i

        components: Dict[int, List[int]] = {}
        for i in range(len(members)):
            components.setdefault(_find(parent, i), []).append(i)

        for indices in components.values():
            if len(indices) < 2:
                continue
            ordered = sorted(indices, key=lambda i: members[i][1].start_minute)
            groups.append(
                ConflictGroup(
                    room_id=room_id,
                    date=members[ordered[0]][1].date,
                    allocations=[members[i][0] for i in ordered],
                )
            )

    groups.sort(key=lambda group: (group.date, group.room_id))
    return groups
