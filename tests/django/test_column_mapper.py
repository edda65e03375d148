from django.test import SimpleTestCase

from exam_scheduling.constants import CanonicalField
from exam_scheduling.services.export import export_labels
from exam_scheduling.utils.column_mapper import (
    MissingTitleColumn,
    SheetStructureError,
    normalize_header,
    resolve_headers,
)


class NormalizeHeaderTests(SimpleTestCase):
    def test_whitespace_and_case(self):
        self.assertEqual(normalize_header("  Course   Code "), "course code")
        self.assertEqual(normalize_header("  کد   درس "), "کد درس")

    def test_arabic_letter_variants_fold(self):
        self.assertEqual(normalize_header("كد درس"), "کد درس")
        self.assertEqual(normalize_header("تعداد ثبت\u200cنامي"), "تعداد ثبت نامی")

    def test_placeholder_headers_are_blank(self):
        for value in (None, "", "nan", "Unnamed: 3"):
            with self.subTest(value=value):
                self.assertEqual(normalize_header(value), "")


class ResolveHeadersTests(SimpleTestCase):
    def test_persian_sheet(self):
        mapping = resolve_headers(["عنوان", "کد درس", "زمان امتحان", "تعداد دانشجویان", "محل برگزاری"])
        self.assertEqual(
            mapping,
            {
                CanonicalField.TITLE: 0,
                CanonicalField.COURSE_CODE: 1,
                CanonicalField.EXAM_DATETIME: 2,
                CanonicalField.EXPECTED_STUDENTS: 3,
                CanonicalField.LOCATION: 4,
            },
        )

    def test_jalali_date_header_does_not_bind_gregorian_date(self):
        mapping = resolve_headers(["عنوان", "تاریخ (شمسی)"])
        self.assertEqual(mapping[CanonicalField.DATE_JALALI], 1)
        self.assertNotIn(CanonicalField.DATE, mapping)

    def test_both_date_columns(self):
        mapping = resolve_headers(["title", "تاریخ (میلادی)", "تاریخ (شمسی)"])
        self.assertEqual(mapping[CanonicalField.DATE], 1)
        self.assertEqual(mapping[CanonicalField.DATE_JALALI], 2)

    def test_first_header_wins(self):
        mapping = resolve_headers(["Title", "عنوان", "نام درس"])
        self.assertEqual(mapping, {CanonicalField.TITLE: 0})

    def test_partial_match_on_longer_headers(self):
        mapping = resolve_headers(["عنوان", "محل برگزاری امتحان"])
        self.assertEqual(mapping[CanonicalField.LOCATION], 1)

    def test_short_and_unknown_headers_ignored(self):
        mapping = resolve_headers(["Unnamed: 0", "title", "abc", "notes column", "کد"])
        self.assertEqual(mapping, {CanonicalField.TITLE: 1, CanonicalField.COURSE_CODE: 4})

    def test_missing_title_lists_available_headers(self):
        with self.assertRaises(MissingTitleColumn) as ctx:
            resolve_headers(["کد درس", None, "ساعت"])
        self.assertIsInstance(ctx.exception, SheetStructureError)
        self.assertEqual(ctx.exception.available_headers, ["کد درس", "ساعت"])
        self.assertIn("Title column not found", str(ctx.exception))

    def test_export_labels_resolve_back(self):
        for language in ("fa", "en"):
            with self.subTest(language=language):
                labels = export_labels(language)
                mapping = resolve_headers(labels)
                self.assertEqual(
                    {field.value: index for field, index in mapping.items()},
                    {
                        "title": 0,
                        "course_code": 1,
                        "date": 2,
                        "date_jalali": 3,
                        "time": 4,
                        "duration_minutes": 5,
                        "expected_students": 6,
                        "location": 7,
                    },
                )
