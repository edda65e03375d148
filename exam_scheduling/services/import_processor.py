import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.conf import settings

from exam_scheduling.constants import ConflictPolicy, RowStatus, UnallocatedPolicy
from exam_scheduling.entities import Allocation, Exam, ParsedExamRecord, Room
from exam_scheduling.services.backend import BackendError
from exam_scheduling.services.conflicts import CapacityInfo, available_capacity, default_duration
from exam_scheduling.utils.excel_parser import read_exam_sheet

logger = logging.getLogger(__name__)

DUPLICATE_MARKERS = ("unique", "duplicate", "یکتا")


@dataclass
class RowOutcome:
    row: Optional[int]
    label: str
    status: RowStatus = RowStatus.PENDING
    message: str = ""
    notes: List[str] = field(default_factory=list)
    exam_id: Optional[int] = None
    allocation_id: Optional[int] = None
    capacity: Optional[CapacityInfo] = None

    @property
    def is_failure(self) -> bool:
        return self.status == RowStatus.CREATE_FAILED

    @property
    def is_warning(self) -> bool:
        if self.status == RowStatus.DUPLICATE:
            return True
        return self.status == RowStatus.CREATED and bool(self.notes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "label": self.label,
            "status": self.status.value,
            "message": self.message,
        }


@dataclass
class ImportSummary:
    outcomes: List[RowOutcome] = field(default_factory=list)
    created_exams: List[Exam] = field(default_factory=list)
    skipped: int = 0
    total_rows: int = 0

    @property
    def imported(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == RowStatus.CREATED)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_failure)

    @property
    def warnings(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_warning)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "failed": self.failed,
            "warnings": self.warnings,
            "skipped": self.skipped,
            "total_rows": self.total_rows,
            "created_exams": [
                {"id": exam.id, "title": exam.title, "course_code": exam.course_code}
                for exam in self.created_exams
            ],
            "row_outcomes": [
                outcome.as_dict() for outcome in self.outcomes if outcome.is_warning or outcome.is_failure
            ],
        }


def is_duplicate_rejection(error: BackendError) -> bool:
    """True when the API rejected an exam for breaking the (course_code, term) uniqueness rule."""
    if not error.mentions("course_code", "term"):
        return False
    return any(error.mentions(marker) for marker in DUPLICATE_MARKERS)


def utc_iso(value: datetime) -> str:
    return value.astimezone(dt_timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ExamImportProcessor:
    """
    Persist parsed exam rows through the examboard API, one row at a time.

    Rooms, the term's exams and all allocations are fetched once up front;
    duplicate and capacity bookkeeping for the rest of the batch happens in
    memory. A row that fails never stops the batch, not even when the API is unreachable.
    """

    def __init__(
        self,
        backend,
        term_id: int,
        *,
        owner_id: Optional[int] = None,
        on_event: Optional[Callable[[RowOutcome], None]] = None,
        default_expected_students: Optional[int] = None,
        default_duration_minutes: Optional[int] = None,
        unallocated_policy: Optional[str] = None,
        conflict_policy: Optional[str] = None,
    ):
        self.backend = backend
        self.term_id = int(term_id)
        self.owner_id = owner_id if owner_id is not None else settings.EXAM_IMPORT_DEFAULT_OWNER
        self.on_event = on_event
        self.default_expected_students = (
            default_expected_students
            if default_expected_students is not None
            else settings.EXAM_IMPORT_DEFAULT_EXPECTED_STUDENTS
        )
        self.default_duration_minutes = default_duration_minutes or default_duration()
        self.unallocated_policy = UnallocatedPolicy(unallocated_policy or settings.EXAM_IMPORT_UNALLOCATED_POLICY)
        self.conflict_policy = ConflictPolicy(conflict_policy or settings.EXAM_IMPORT_CONFLICT_POLICY)

        self.rooms: List[Room] = []
        self.allocations: List[Allocation] = []
        self.exams_by_id: Dict[int, Exam] = {}
        self.room_lookup: Dict[str, Room] = {}
        self.known_keys = set()
        self.batch_keys = set()
        self.summary = ImportSummary()

    # ------------------------------------------------------------------
    # Pre-fetch
    # ------------------------------------------------------------------

    def _safe_read(self, label: str, reader: Callable[[], list]) -> list:
        try:
            return list(reader())
        except BackendError as exc:
            logger.warning("Could not load %s for import into term %s: %s", label, self.term_id, exc.describe())
            return []

    def prefetch(self) -> None:
        self.rooms = self._safe_read("rooms", self.backend.list_rooms)
        existing = self._safe_read("exams", lambda: self.backend.list_exams(self.term_id))
        self.allocations = self._safe_read("allocations", self.backend.list_allocations)

        self.room_lookup = {}
        for room in self.rooms:
            if room.id is None or not room.name:
                continue
            self.room_lookup.setdefault(room.name.strip().lower(), room)
            self.room_lookup.setdefault(room.name.strip(), room)

        self.exams_by_id = {exam.id: exam for exam in existing if exam.id is not None}
        self.known_keys = set()
        for exam in existing:
            key = self._duplicate_key(exam.course_code, exam.term_id)
            if key:
                self.known_keys.add(key)
        self.batch_keys = set()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _duplicate_key(self, course_code: Optional[str], term_id: Optional[int] = None) -> Optional[str]:
        code = (course_code or "").strip()
        if not code:
            return None
        return f"{code}|{term_id if term_id is not None else self.term_id}"

    def resolve_room(self, location: Optional[str]) -> Optional[Room]:
        """Case-insensitive name match, then exact name, then a literal numeric id."""
        if not location:
            return None
        name = location.strip()
        room = self.room_lookup.get(name.lower()) or self.room_lookup.get(name)
        if room:
            return room
        try:
            room_id = int(float(name))
        except (ValueError, OverflowError):
            return None
        for candidate in self.rooms:
            if candidate.id == room_id:
                return candidate
        # Unknown id: trust it, but without a capacity to check against.
        return Room(id=room_id, name=name, capacity=0)

    def _emit(self, outcome: RowOutcome) -> None:
        if outcome.notes and not outcome.message:
            outcome.message = " | ".join(outcome.notes)
        if outcome.status == RowStatus.CREATE_FAILED:
            logger.error("Row %s (%s) failed: %s", outcome.row, outcome.label, outcome.message)
        elif outcome.status == RowStatus.DUPLICATE:
            logger.warning("Row %s (%s) skipped as duplicate: %s", outcome.row, outcome.label, outcome.message)
        else:
            logger.debug("Row %s (%s) %s.", outcome.row, outcome.label, outcome.status.value)
        if self.on_event is not None:
            self.on_event(outcome)

    def _mark_duplicate(self, outcome: RowOutcome, code: str, where: str) -> RowOutcome:
        outcome.status = RowStatus.DUPLICATE
        outcome.message = f"Course code {code} {where}; row skipped."
        return outcome

    # ------------------------------------------------------------------
    # Row processing
    # ------------------------------------------------------------------

    def exam_payload(self, record: ParsedExamRecord, expected_students: int) -> Dict[str, Any]:
        payload = {
            "title": record.title.strip(),
            "course_code": (record.course_code or "").strip() or None,
            "term": self.term_id,
            "owner": self.owner_id,
            "duration_minutes": record.duration_minutes,
            "expected_students": expected_students,
        }
        return {key: value for key, value in payload.items() if value is not None}

    def process_record(self, record: ParsedExamRecord) -> RowOutcome:
        outcome = RowOutcome(row=record.row_number, label=record.label, notes=list(record.notes))

        key = self._duplicate_key(record.course_code)
        if key:
            code = record.course_code.strip()
            if key in self.known_keys:
                return self._mark_duplicate(outcome, code, "is already registered in this term")
            if key in self.batch_keys:
                return self._mark_duplicate(outcome, code, "appears more than once in this file")
            self.batch_keys.add(key)

        students = record.expected_students if record.expected_students and record.expected_students > 0 else None
        if students is None:
            students = self.default_expected_students
            outcome.notes.append(f"Expected students missing; defaulted to {students}.")

        room = self.resolve_room(record.location)
        if record.location and room is None:
            logger.warning("Row %s: room %r not found; exam will be created without a room.", record.row_number, record.location)

        payload = self.exam_payload(record, students)
        try:
            exam = self.backend.create_exam(payload)
        except BackendError as exc:
            if record.course_code and is_duplicate_rejection(exc):
                return self._mark_duplicate(outcome, record.course_code.strip(), "is already registered in this term")
            outcome.status = RowStatus.CREATE_FAILED
            outcome.message = exc.describe()
            return outcome

        outcome.status = RowStatus.CREATED
        outcome.exam_id = exam.id
        self.summary.created_exams.append(exam)
        if exam.id is not None:
            if exam.expected_students is None:
                exam.expected_students = payload["expected_students"]
            self.exams_by_id[exam.id] = exam

        missing = []
        if exam.id is None:
            missing.append("exam id")
        if record.date is None:
            missing.append("date")
        if record.start is None:
            missing.append("time")
        if room is None:
            missing.append(f"room '{record.location}'" if record.location else "room")
        if not students:
            missing.append("expected students")

        if missing:
            if self.unallocated_policy == UnallocatedPolicy.WARN:
                outcome.notes.append(f"No room allocation created; missing {', '.join(missing)}.")
            return outcome

        self._allocate(outcome, record, exam, room, students)
        return outcome

    def _allocate(self, outcome: RowOutcome, record: ParsedExamRecord, exam: Exam, room: Room, students: int) -> None:
        duration = record.duration_minutes or self.default_duration_minutes
        room_known = any(candidate.id == room.id for candidate in self.rooms)

        if room_known:
            capacity = available_capacity(
                room,
                record.date,
                record.start,
                duration,
                self.allocations,
                self.exams_by_id.values(),
                exclude_exam_id=exam.id,
            )
            outcome.capacity = capacity
            if students > capacity.available:
                outcome.notes.append(
                    f"Room {room.name} has {capacity.available} of {capacity.total} seats free at this time "
                    f"but {students} students are expected ({capacity.overlapping_count} overlapping exams)."
                )
                if self.conflict_policy == ConflictPolicy.SKIP:
                    outcome.notes.append("Room allocation skipped.")
                    return

        start_at = datetime.combine(record.date, record.start, tzinfo=dt_timezone.utc)
        end_at = start_at + timedelta(minutes=duration)
        payload = {
            "exam": exam.id,
            "room": room.id,
            "start_at": utc_iso(start_at),
            "end_at": utc_iso(end_at),
            "allocated_seats": students,
        }
        try:
            created = self.backend.create_allocation(payload)
        except BackendError as exc:
            # The exam stays; only the room assignment is lost.
            logger.error("Row %s: allocation for exam %s failed: %s", record.row_number, exam.id, exc.describe())
            outcome.notes.append(f"Exam created but room allocation failed: {exc.describe()}")
            return

        outcome.allocation_id = created.id
        self.allocations.append(
            Allocation(
                id=created.id,
                exam_id=exam.id,
                room_id=room.id,
                start_at=start_at,
                end_at=end_at,
                allocated_seats=students,
            )
        )

    def run(
        self,
        records: Iterable[ParsedExamRecord],
        *,
        skipped: int = 0,
        total_rows: Optional[int] = None,
    ) -> ImportSummary:
        records = list(records)
        self.summary = ImportSummary(
            skipped=skipped,
            total_rows=total_rows if total_rows is not None else len(records) + skipped,
        )
        self.prefetch()

        for record in records:
            outcome = self.process_record(record)
            self.summary.outcomes.append(outcome)
            self._emit(outcome)

        logger.info(
            "Imported %s exams into term %s (%s failed, %s warnings, %s skipped).",
            self.summary.imported,
            self.term_id,
            self.summary.failed,
            self.summary.warnings,
            self.summary.skipped,
        )
        return self.summary


def import_exam_workbook(file, backend, term_id: int, **options) -> Dict[str, Any]:
    """Parse an uploaded workbook and import its rows; returns a status dict."""
    parsed = read_exam_sheet(file)
    if parsed.get("status") != "ok":
        return parsed
    if not parsed["records"]:
        return {"status": "error", "file": parsed["file"], "message": "No exam rows found in the workbook."}

    processor = ExamImportProcessor(backend, term_id, **options)
    summary = processor.run(parsed["records"], skipped=parsed["skipped"], total_rows=parsed["total_rows"])
    return {"status": "ok", "file": parsed["file"], **summary.as_dict()}
