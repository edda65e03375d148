from datetime import date, datetime, time
from datetime import timezone as dt_timezone

from django.test import SimpleTestCase

from exam_scheduling.entities import (
    Allocation,
    Exam,
    Room,
    Term,
    active_terms,
    parse_api_datetime,
)


class EntityParsingTests(SimpleTestCase):
    def test_room_accepts_string_ids_and_nested_category(self):
        room = Room.from_api({"id": "3", "name": " Hall A ", "capacity": "40", "category": {"id": 2, "name": "Lecture"}})
        self.assertEqual((room.id, room.name, room.capacity), (3, "Hall A", 40))
        self.assertEqual((room.category_id, room.category_name), (2, "Lecture"))

    def test_exam_with_legacy_schedule(self):
        exam = Exam.from_api(
            {
                "id": 9,
                "title": "Calculus",
                "term": {"id": 3, "name": "1404-1"},
                "course_code": "MATH101",
                "date": {"iso": "2026-01-08", "jalali": "1404/10/18"},
                "time": "10:30",
                "location": "7",
            }
        )
        self.assertEqual(exam.term_id, 3)
        self.assertEqual(exam.legacy_schedule.date, date(2026, 1, 8))
        self.assertEqual(exam.legacy_schedule.start, time(10, 30))
        self.assertEqual(exam.legacy_schedule.location, "7")

    def test_exam_without_schedule_fields(self):
        exam = Exam.from_api({"id": 9, "title": "Calculus", "term": 3})
        self.assertIsNone(exam.legacy_schedule)
        self.assertIsNone(exam.course_code)

    def test_allocation_wall_clock(self):
        allocation = Allocation.from_api(
            {
                "id": 1,
                "exam": {"id": 9},
                "room": "7",
                "start_at": {"iso": "2026-01-08T10:30:00Z", "jalali": "1404/10/18 10:30"},
                "end_at": "2026-01-08T12:00:00Z",
            }
        )
        self.assertEqual(allocation.exam_id, 9)
        self.assertEqual(allocation.room_id, 7)
        self.assertEqual(allocation.date, date(2026, 1, 8))
        self.assertEqual(allocation.start_time, time(10, 30))
        self.assertEqual(allocation.duration_minutes, 90)

    def test_parse_api_datetime(self):
        expected = datetime(2026, 1, 8, 10, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(parse_api_datetime("2026-01-08T10:30:00Z"), expected)
        self.assertEqual(parse_api_datetime("2026-01-08T10:30:00"), expected)
        self.assertEqual(parse_api_datetime("2026-01-08T14:00:00+03:30"), expected)
        self.assertEqual(parse_api_datetime("2026-01-08"), datetime(2026, 1, 8, tzinfo=dt_timezone.utc))
        self.assertIsNone(parse_api_datetime(""))
        self.assertIsNone(parse_api_datetime("tomorrow"))

    def test_active_terms(self):
        terms = [
            Term.from_api({"id": 1, "name": "1403-2", "is_archived": True}),
            Term.from_api({"id": 2, "name": "1404-1", "start_date": "2025-09-23"}),
        ]
        self.assertEqual([term.id for term in active_terms(terms)], [2])
        self.assertEqual(terms[1].start_date, date(2025, 9, 23))
