from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from io import BytesIO

import pandas as pd
from django.core.files.uploadedfile import SimpleUploadedFile

from exam_scheduling.entities import Allocation, Exam, Room, Term
from exam_scheduling.services.backend import BackendError


def make_allocation(alloc_id, exam_id, room_id, start, minutes=None, seats=None):
    """``start`` is ``"YYYY-MM-DD HH:MM"`` wall-clock time, stored as UTC."""
    start_at = datetime.strptime(start, "%Y-%m-%d %H:%M").replace(tzinfo=dt_timezone.utc)
    end_at = start_at + timedelta(minutes=minutes) if minutes is not None else None
    return Allocation(
        id=alloc_id,
        exam_id=exam_id,
        room_id=room_id,
        start_at=start_at,
        end_at=end_at,
        allocated_seats=seats,
    )


def workbook_upload(headers, rows, name="exams.xlsx"):
    buffer = BytesIO()
    pd.DataFrame(rows, columns=headers).to_excel(buffer, index=False)
    return SimpleUploadedFile(
        name,
        buffer.getvalue(),
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


class FakeBackend:
    """In-memory stand-in for ExamboardClient."""

    def __init__(self, rooms=None, exams=None, allocations=None, terms=None):
        self.rooms = list(rooms or [])
        self.exams = list(exams or [])
        self.allocations = list(allocations or [])
        self.terms = list(terms or [Term(id=3, name="1404-1")])
        self.exam_payloads = []
        self.allocation_payloads = []
        self.exam_errors = {}
        self.allocation_error = None
        self.failing_reads = set()
        self._next_id = 100

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def _read(self, name, items):
        if name in self.failing_reads:
            raise BackendError(f"GET {name} failed", status_code=500, detail="Server error")
        return list(items)

    def list_terms(self):
        return self._read("terms", self.terms)

    def list_rooms(self):
        return self._read("rooms", self.rooms)

    def list_exams(self, term_id=None):
        exams = self._read("exams", self.exams)
        if term_id is None:
            return exams
        return [exam for exam in exams if exam.term_id == term_id]

    def list_allocations(self, exam_id=None):
        allocations = self._read("allocations", self.allocations)
        if exam_id is None:
            return allocations
        return [allocation for allocation in allocations if allocation.exam_id == exam_id]

    def create_exam(self, payload):
        self.exam_payloads.append(payload)
        error = self.exam_errors.get(payload["title"])
        if error is not None:
            raise error
        self._next_id += 1
        exam = Exam.from_api({**payload, "id": self._next_id})
        self.exams.append(exam)
        return exam

    def create_allocation(self, payload):
        self.allocation_payloads.append(payload)
        if self.allocation_error is not None:
            raise self.allocation_error
        self._next_id += 1
        allocation = Allocation.from_api({**payload, "id": self._next_id})
        self.allocations.append(allocation)
        return allocation


def hall(room_id=7, name="Hall A", capacity=100):
    return Room(id=room_id, name=name, capacity=capacity)
