"""
Normalization of the date, time and duration encodings found in exam sheets.

Every helper here is total: unparseable input yields ``None`` (or an empty
``TemporalParts``) and never raises, leaving the caller to decide whether a
missing value invalidates a row.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Optional

from openpyxl.utils.datetime import from_excel

from exam_scheduling.constants import MINUTES_PER_DAY

from .jalali import JALALI_DATE_RE, jalali_to_gregorian, parse_jalali_text

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EPOCH_RE = re.compile(r"^\d{10,13}$")
CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.\d+)?)?$")
CLOCK_SEARCH_RE = re.compile(r"(?<![\d/\-])(\d{1,2}):(\d{2})(?!\d)")
TIME_RANGE_RE = re.compile(
    r"(?:(?:از|from)\s*)?(\d{1,2}):(\d{2})\s*(?:تا|to|–|-)\s*(\d{1,2}):(\d{2})",
    re.IGNORECASE,
)

# Four-digit years below this are Solar Hijri, whatever the separator.
JALALI_YEAR_LIMIT = 1700
EPOCH_MILLIS_THRESHOLD = 10_000_000_000
# Largest serial Excel can store (9999-12-31).
EXCEL_MAX_SERIAL = 2958465

_DIGITS = str.maketrans("۰۱۲۳۴۵۶۷۸۹٠١٢٣٤٥٦٧٨٩", "01234567890123456789")


@dataclass(frozen=True)
class TemporalParts:
    date: "Optional[date]" = None
    start: Optional[time] = None
    duration_minutes: Optional[int] = None

    @property
    def iso_date(self) -> Optional[str]:
        return self.date.isoformat() if self.date else None

    @property
    def time_text(self) -> Optional[str]:
        return format_clock(self.start)

    @property
    def start_minute(self) -> Optional[int]:
        return minute_of_day(self.start)

    def is_empty(self) -> bool:
        return self.date is None and self.start is None and self.duration_minutes is None


def normalize_digits(text: str) -> str:
    """Swap Persian and Arabic-Indic digits for ASCII ones."""
    return str(text).translate(_DIGITS)


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return value != value  # catches NaN / NaT
    except Exception:
        return False


def _maybe_to_datetime(value: Any) -> Any:
    if hasattr(value, "to_pydatetime"):
        try:
            return value.to_pydatetime()
        except (TypeError, ValueError):
            return None
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_clock(value: Optional[time]) -> Optional[str]:
    if value is None:
        return None
    return f"{value.hour:02d}:{value.minute:02d}"


def minute_of_day(value: Optional[time]) -> Optional[int]:
    if value is None:
        return None
    return value.hour * 60 + value.minute


def _clock(hours: int, minutes: int) -> Optional[time]:
    if 0 <= hours < 24 and 0 <= minutes < 60:
        return time(hour=hours, minute=minutes)
    return None


def epoch_to_date(value: Any) -> Optional[date]:
    """Treat a 10-13 digit integer as a Unix timestamp (seconds or milliseconds)."""
    if isinstance(value, str):
        text = normalize_digits(value).strip()
        if not EPOCH_RE.match(text):
            return None
        stamp = int(text)
    elif _is_number(value):
        if isinstance(value, float) and (math.isnan(value) or not value.is_integer()):
            return None
        stamp = int(value)
        if not 10 <= len(str(abs(stamp))) <= 13:
            return None
    else:
        return None

    seconds = stamp if stamp < EPOCH_MILLIS_THRESHOLD else stamp / 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def excel_fraction_to_time(value: Any) -> Optional[time]:
    """Convert an Excel fraction-of-a-day (0 <= t < 1) into a clock time."""
    if not _is_number(value):
        return None
    if math.isnan(value) or not 0 <= value < 1:
        return None
    total_hours = value * 24
    hours = math.floor(total_hours)
    # Excel stores 09:30 as 0.39583333..., so allow for float noise before flooring.
    minutes = math.floor((total_hours - hours) * 60 + 1e-6)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    return _clock(hours, minutes)


def excel_serial_to_date(value: Any) -> Optional[date]:
    if not _is_number(value) or math.isnan(value):
        return None
    if not 1 <= value <= EXCEL_MAX_SERIAL:
        return None
    try:
        return from_excel(value).date()
    except (TypeError, ValueError, OverflowError):
        return None


def normalize_time_text(text: Any) -> Optional[time]:
    """Parse ``H:MM`` / ``HH:MM`` (optionally with seconds) into a minute-precision time."""
    if is_missing(text):
        return None
    match = CLOCK_RE.match(normalize_digits(text).strip())
    if not match:
        return None
    return _clock(int(match.group(1)), int(match.group(2)))


def _time_from_digits(text: str) -> Optional[time]:
    digits = re.sub(r"[^0-9]", "", text)
    if len(digits) in (3, 4) and len(digits) == len(text.strip()):
        return _clock(int(digits[:-2]), int(digits[-2:]))
    return None


def parse_time_range(text: str):
    """Return ``(start, duration_minutes)`` for ``از 10:30 تا 12:00``-style text."""
    match = TIME_RANGE_RE.search(normalize_digits(text))
    if not match:
        return None
    start = _clock(int(match.group(1)), int(match.group(2)))
    end = _clock(int(match.group(3)), int(match.group(4)))
    if start is None or end is None:
        return None
    duration = minute_of_day(end) - minute_of_day(start)
    if duration < 0:
        # Overnight exam: ends the following day.
        duration += MINUTES_PER_DAY
    return start, duration


def _jalali_date(parts) -> Optional[date]:
    if not parts:
        return None
    try:
        return jalali_to_gregorian(*parts)
    except ValueError:
        return None


def _iso_date(text: str) -> Optional[date]:
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def parse_date_time(raw: Any) -> TemporalParts:
    """
    Normalize one loosely-encoded date/time cell.

    Handles epoch timestamps, Jalali dates (alone or with an ``از .. تا ..``
    range), ISO dates, bare clock times and Excel day fractions. Whatever
    cannot be parsed is left as ``None``.
    """
    if is_missing(raw):
        return TemporalParts()

    raw = _maybe_to_datetime(raw)
    if raw is None:
        return TemporalParts()
    if isinstance(raw, datetime):
        clock = raw.time().replace(second=0, microsecond=0)
        return TemporalParts(date=raw.date(), start=clock if clock != time(0) else None)
    if isinstance(raw, date):
        return TemporalParts(date=raw)
    if isinstance(raw, time):
        return TemporalParts(start=raw.replace(second=0, microsecond=0))
    if isinstance(raw, bool):
        return TemporalParts()
    if _is_number(raw):
        epoch = epoch_to_date(raw)
        if epoch:
            return TemporalParts(date=epoch)
        return TemporalParts(start=excel_fraction_to_time(raw))

    text = normalize_digits(raw).strip()
    if EPOCH_RE.match(text):
        return TemporalParts(date=epoch_to_date(text))

    jalali_parts = parse_jalali_text(text)
    if ISO_DATE_RE.match(text) and not (jalali_parts and jalali_parts[0] < JALALI_YEAR_LIMIT):
        return TemporalParts(date=_iso_date(text))

    if jalali_parts:
        parsed_date = _jalali_date(jalali_parts) if jalali_parts[0] < JALALI_YEAR_LIMIT else None
        if parsed_date is None and jalali_parts[0] >= JALALI_YEAR_LIMIT:
            # "2026/01/08" style Gregorian date written with slashes.
            try:
                parsed_date = date(*jalali_parts)
            except ValueError:
                parsed_date = None
        remainder = text[JALALI_DATE_RE.match(text).end():]
        time_range = parse_time_range(text)
        if time_range:
            start, duration = time_range
            return TemporalParts(date=parsed_date, start=start, duration_minutes=duration)
        clock = CLOCK_SEARCH_RE.search(remainder)
        start = _clock(int(clock.group(1)), int(clock.group(2))) if clock else None
        return TemporalParts(date=parsed_date, start=start)

    time_range = parse_time_range(text)
    if time_range:
        start, duration = time_range
        return TemporalParts(start=start, duration_minutes=duration)

    return TemporalParts(start=normalize_time_text(text))


def coerce_gregorian_date(value: Any) -> Optional[date]:
    """Read an explicit Gregorian date cell: date objects, ISO text or Excel serials."""
    if is_missing(value):
        return None
    value = _maybe_to_datetime(value)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if _is_number(value):
        return epoch_to_date(value) or excel_serial_to_date(value)

    text = normalize_digits(value).strip()
    if ISO_DATE_RE.match(text):
        parsed = _iso_date(text)
        if parsed and parsed.year >= JALALI_YEAR_LIMIT:
            return parsed
        return None
    if re.match(r"^\d{4}-\d{2}-\d{2}[T ]", text):
        parsed = _iso_date(text[:10])
        return parsed if parsed and parsed.year >= JALALI_YEAR_LIMIT else None
    parts = parse_jalali_text(text)
    if parts and parts[0] >= JALALI_YEAR_LIMIT:
        try:
            return date(*parts)
        except ValueError:
            return None
    return None


def coerce_jalali_date(value: Any) -> Optional[date]:
    """Read a Jalali date cell (``1404/10/18`` or ``1404-10-18``) as a Gregorian date."""
    if is_missing(value):
        return None
    value = _maybe_to_datetime(value)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parts = parse_jalali_text(normalize_digits(value))
    if not parts or parts[0] >= JALALI_YEAR_LIMIT:
        return None
    return _jalali_date(parts)


def coerce_time(value: Any) -> Optional[time]:
    if is_missing(value):
        return None
    value = _maybe_to_datetime(value)
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, bool):
        return None
    if _is_number(value):
        return excel_fraction_to_time(value)
    text = normalize_digits(value).strip()
    return normalize_time_text(text) or _time_from_digits(text)


def coerce_minutes(value: Any) -> Optional[int]:
    """Read a duration cell as whole minutes."""
    if is_missing(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if 0 < abs(value) < 1:
            # Excel duration encoded as fraction of a day
            return int(round(value * MINUTES_PER_DAY))
        return int(math.floor(value))
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    text = normalize_digits(value).strip().lower()
    if not text:
        return None
    if ":" in text:
        parts = [p for p in text.split(":") if p]
        if len(parts) >= 2:
            try:
                return int(parts[0]) * 60 + int(parts[1])
            except ValueError:
                pass
    try:
        num = float(text)
        if 0 < abs(num) < 1:
            return int(round(num * MINUTES_PER_DAY))
        return int(math.floor(num))
    except (ValueError, TypeError):
        pass
    hour_match = re.search(r"(\d+)\s*(?:h|ساعت)", text)
    minute_match = re.search(r"(\d+)\s*(?:m|دقیقه)", text)
    if hour_match or minute_match:
        hours = int(hour_match.group(1)) if hour_match else 0
        minutes = int(minute_match.group(1)) if minute_match else 0
        return hours * 60 + minutes
    digits = re.findall(r"\d+", text)
    if digits:
        return int(digits[0])
    return None


def coerce_count(value: Any) -> Optional[int]:
    """Read a head-count cell, flooring fractional values."""
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else int(math.floor(value))
    text = normalize_digits(value).strip().replace(",", "")
    try:
        return int(math.floor(float(text)))
    except (ValueError, OverflowError):
        return None
