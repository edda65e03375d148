from datetime import date, time
from io import BytesIO

import pandas as pd
from django.test import SimpleTestCase
from openpyxl import load_workbook

from exam_scheduling.constants import EXPORT_SHEET_NAME
from exam_scheduling.entities import Exam, LegacySchedule, Room
from exam_scheduling.services.export import (
    build_export_rows,
    export_labels,
    export_workbook,
    resolve_schedule,
)
from exam_scheduling.services.reports import capacity_report, conflict_report, utilization_report
from exam_scheduling.utils.column_mapper import resolve_headers

from .helpers import hall, make_allocation


def _exam(exam_id, title="Calculus", code="MATH101", students=40, duration=90, legacy=None):
    return Exam(
        id=exam_id,
        title=title,
        term_id=3,
        course_code=code,
        expected_students=students,
        duration_minutes=duration,
        legacy_schedule=legacy,
    )


class ResolveScheduleTests(SimpleTestCase):
    def test_allocation_wins_over_legacy_values(self):
        exam = _exam(1, legacy=LegacySchedule(date=date(2025, 12, 1), start=time(8, 0), location="Old hall"))
        allocation = make_allocation(10, 1, 7, "2026-01-08 10:30", minutes=90)

        schedule = resolve_schedule(exam, allocation, [hall()])

        self.assertEqual(schedule.date, date(2026, 1, 8))
        self.assertEqual(schedule.start, time(10, 30))
        self.assertEqual(schedule.duration_minutes, 90)
        self.assertEqual(schedule.room_name, "Hall A")

    def test_legacy_values_without_allocation(self):
        exam = _exam(1, legacy=LegacySchedule(date=date(2026, 1, 8), start=time(9, 0), location="7"))
        schedule = resolve_schedule(exam, None, [hall()])
        self.assertEqual((schedule.room_id, schedule.room_name), (7, "Hall A"))
        self.assertEqual(schedule.start, time(9, 0))

        exam = _exam(2, legacy=LegacySchedule(location="Annex"))
        self.assertEqual(resolve_schedule(exam, None, [hall()]).room_name, "Annex")

    def test_nothing_scheduled(self):
        schedule = resolve_schedule(_exam(1), None, [])
        self.assertIsNone(schedule.date)
        self.assertEqual(schedule.duration_minutes, 90)


class ExportTests(SimpleTestCase):
    def setUp(self):
        self.exams = [_exam(1), _exam(2, title="Physics", code=None, students=None, duration=None)]
        self.allocations = [
            make_allocation(10, 1, 7, "2026-01-08 10:30", minutes=90),
            make_allocation(11, 1, 8, "2026-01-09 10:30", minutes=90),
        ]

    def test_rows_use_first_allocation(self):
        rows = build_export_rows(self.exams, self.allocations, [hall()], "en")

        self.assertEqual(
            rows[0],
            {
                "Title": "Calculus",
                "Course code": "MATH101",
                "Date (Gregorian)": "2026-01-08",
                "Date (Jalali)": "1404/10/18",
                "Time": "10:30",
                "Duration (minutes)": 90,
                "Expected students": 40,
                "Location": "Hall A",
            },
        )
        self.assertEqual(rows[1]["Course code"], "")
        self.assertEqual(rows[1]["Date (Jalali)"], "")
        self.assertEqual(rows[1]["Location"], "")

    def test_unknown_language(self):
        with self.assertRaises(ValueError):
            export_labels("de")

    def test_workbook_reimports_with_same_headers(self):
        content = export_workbook(self.exams, self.allocations, [hall()], "fa")

        df = pd.read_excel(BytesIO(content), sheet_name=EXPORT_SHEET_NAME, dtype=object)
        self.assertEqual(list(df.columns), export_labels("fa"))
        self.assertEqual(len(df.index), 2)
        mapping = resolve_headers(list(df.columns))
        self.assertEqual(len(mapping), 8)

        sheet = load_workbook(BytesIO(content))[EXPORT_SHEET_NAME]
        self.assertTrue(sheet.sheet_view.rightToLeft)

    def test_english_workbook_is_left_to_right(self):
        content = export_workbook(self.exams, [], [hall()], "en")
        sheet = load_workbook(BytesIO(content))[EXPORT_SHEET_NAME]
        self.assertFalse(sheet.sheet_view.rightToLeft)
        self.assertEqual(sheet["A1"].value, "Title")


class ReportTests(SimpleTestCase):
    def test_conflict_report(self):
        exams = [_exam(1), _exam(2, title="Physics", code="PHYS100", students=20)]
        allocations = [
            make_allocation(10, 1, 7, "2026-01-08 10:30", minutes=90),
            make_allocation(11, 2, 7, "2026-01-08 11:00", minutes=60),
        ]

        report = conflict_report(exams, allocations, [hall()])

        self.assertEqual(len(report), 1)
        group = report[0]
        self.assertEqual(group["room"], {"id": 7, "name": "Hall A"})
        self.assertEqual(group["date"], "2026-01-08")
        self.assertEqual(group["date_jalali"], "1404/10/18")
        self.assertEqual(
            [(member["course_code"], member["start"], member["end"]) for member in group["allocations"]],
            [("MATH101", "10:30", "12:00"), ("PHYS100", "11:00", "12:00")],
        )

    def test_capacity_report(self):
        rooms = [hall(capacity=100), Room(id=8, name="Lab", capacity=10)]
        exams = [
            _exam(1, students=40),
            _exam(2, code="PHYS100", students=12),
            _exam(3, code="CHEM100", students=20),
            _exam(4, code="BIO100", students=5),
        ]
        allocations = [
            make_allocation(10, 1, 7, "2026-01-08 10:30", minutes=90),
            make_allocation(11, 2, 8, "2026-01-08 10:30", minutes=90),
            make_allocation(12, 3, 7, "2026-01-09 10:30", minutes=90, seats=25),
        ]

        rows = capacity_report(exams, allocations, rooms)

        self.assertEqual(
            [(row["exam"], row["students"], row["usage_percent"], row["status"]) for row in rows],
            [(2, 12, 120, "exceeded"), (1, 40, 40, "ok"), (3, 25, 25, "underutilized"), (4, 5, None, None)],
        )

    def test_utilization_report(self):
        rooms = [hall(), Room(id=8, name="Lab", capacity=10)]
        allocations = [
            make_allocation(10, 1, 7, "2026-01-08 10:30", minutes=120),
            make_allocation(11, 2, 7, "2026-01-09 10:00", minutes=90),
            make_allocation(12, 3, 7, "2026-01-10 14:00", minutes=60),
        ]

        rows = utilization_report(allocations, rooms, working_days=1, hours_per_day=10)

        busy, idle = rows
        self.assertEqual(busy["room"], {"id": 7, "name": "Hall A", "capacity": 100})
        self.assertEqual(busy["exam_count"], 3)
        self.assertEqual(busy["allocated_hours"], 4.5)
        self.assertEqual(busy["usage_percent"], 45)
        self.assertEqual(busy["empty_hours"], 5.5)
        self.assertEqual(busy["peak_hours"], ["10:00", "14:00"])
        self.assertEqual((idle["exam_count"], idle["usage_percent"], idle["empty_hours"]), (0, 0, 10))
