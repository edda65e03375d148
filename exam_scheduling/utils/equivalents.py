"""
Maps messy exam-sheet headers (Persian or English) to canonical field names.

Order matters: fields are tried top to bottom and synonyms left to right, so
the more specific fields (Jalali date, combined date/time) come before the
generic ``date`` column they would otherwise be swallowed by.
"""

from typing import Dict, NamedTuple, Tuple

from exam_scheduling.constants import CanonicalField


class Synonym(NamedTuple):
    text: str
    locale: str


def _fa(*texts: str) -> Tuple[Synonym, ...]:
    return tuple(Synonym(text, "fa") for text in texts)


def _en(*texts: str) -> Tuple[Synonym, ...]:
    return tuple(Synonym(text, "en") for text in texts)


EXAM_COLUMN_SYNONYMS: Dict[CanonicalField, Tuple[Synonym, ...]] = {
    CanonicalField.TITLE: _fa("عنوان", "نام درس") + _en("title", "exam title"),
    CanonicalField.COURSE_CODE: _fa("کد درس", "كد درس", "کد", "كد") + _en("course_code", "course code"),
    CanonicalField.EXAM_DATETIME: _fa("زمان امتحان") + _en("exam_datetime"),
    CanonicalField.DATE_JALALI: _fa("تاریخ (شمسی)", "تاریخ شمسی", "شمسی") + _en("date_jalali", "date (jalali)", "jalali date"),
    CanonicalField.DATE: _fa("تاریخ", "تاریخ (میلادی)") + _en("date", "date (gregorian)"),
    CanonicalField.TIME: _fa("ساعت") + _en("time"),
    CanonicalField.DURATION_MINUTES: _fa("مدت", "مدت (دقیقه)", "مدت امتحان") + _en("duration_minutes", "duration"),
    CanonicalField.EXPECTED_STUDENTS: _fa(
        "تعداد دانشجویان",
        "تعداد ثبت نامي",
        "تعداد ثبت نامی",
        "ظرفیت",
        "حداكثر ظرفيت",
        "حداکثر ظرفیت",
    ) + _en("expected_students", "expected students"),
    CanonicalField.LOCATION: _fa("محل برگزاری", "مکان") + _en("location"),
}


# Export column labels; the Persian ones resolve back through EXAM_COLUMN_SYNONYMS.
EXPORT_COLUMNS: Tuple[Tuple[str, Dict[str, str]], ...] = (
    ("title", {"fa": "عنوان", "en": "Title"}),
    ("course_code", {"fa": "کد درس", "en": "Course code"}),
    ("date", {"fa": "تاریخ (میلادی)", "en": "Date (Gregorian)"}),
    ("date_jalali", {"fa": "تاریخ (شمسی)", "en": "Date (Jalali)"}),
    ("time", {"fa": "ساعت", "en": "Time"}),
    ("duration_minutes", {"fa": "مدت (دقیقه)", "en": "Duration (minutes)"}),
    ("expected_students", {"fa": "تعداد دانشجویان", "en": "Expected students"}),
    ("location", {"fa": "محل برگزاری", "en": "Location"}),
)
