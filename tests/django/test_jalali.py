from datetime import date, timedelta

from django.test import SimpleTestCase

from exam_scheduling.utils import jalali


class JalaliConversionTests(SimpleTestCase):
    def test_known_dates(self):
        self.assertEqual(jalali.jalali_to_gregorian(1404, 10, 18), date(2026, 1, 8))
        self.assertEqual(jalali.jalali_to_gregorian(1403, 1, 1), date(2024, 3, 20))
        self.assertEqual(jalali.jalali_to_gregorian(1404, 1, 1), date(2025, 3, 21))
        self.assertEqual(jalali.gregorian_to_jalali(date(2026, 1, 8)), (1404, 10, 18))

    def test_leap_years(self):
        self.assertTrue(jalali.is_jalali_leap(1403))
        self.assertTrue(jalali.is_jalali_leap(1399))
        self.assertFalse(jalali.is_jalali_leap(1404))
        self.assertEqual(jalali.jalali_to_gregorian(1403, 12, 30), date(2025, 3, 20))
        self.assertEqual(jalali.jalali_month_length(1403, 12), 30)
        self.assertEqual(jalali.jalali_month_length(1404, 12), 29)

    def test_invalid_components_raise(self):
        for parts in [(1404, 13, 1), (1404, 0, 10), (1404, 12, 30), (1404, 7, 31), (1404, 1, 0)]:
            with self.subTest(parts=parts):
                self.assertFalse(jalali.is_valid_jalali(*parts))
                with self.assertRaises(ValueError):
                    jalali.jalali_to_gregorian(*parts)

    def test_round_trip_covers_consecutive_days(self):
        previous = None
        for year in range(1398, 1407):
            for month in range(1, 13):
                for day in range(1, jalali.jalali_month_length(year, month) + 1):
                    converted = jalali.jalali_to_gregorian(year, month, day)
                    self.assertEqual(jalali.gregorian_to_jalali(converted), (year, month, day))
                    if previous is not None:
                        self.assertEqual(converted - previous, timedelta(days=1))
                    previous = converted

    def test_parse_and_format(self):
        self.assertEqual(jalali.parse_jalali_text("1404/10/18 از 10:30 تا 12:00"), (1404, 10, 18))
        self.assertEqual(jalali.parse_jalali_text("1404-1-5"), (1404, 1, 5))
        self.assertIsNone(jalali.parse_jalali_text("18/10/1404"))
        self.assertIsNone(jalali.parse_jalali_text(None))
        self.assertEqual(jalali.format_jalali(1404, 1, 5), "1404/01/05")
        self.assertEqual(jalali.to_jalali_text(date(2026, 1, 8)), "1404/10/18")
        self.assertEqual(jalali.to_jalali_text(None), "")
