"""
Jalali (Solar Hijri) <-> Gregorian calendar conversion.

Uses the break-point table of the 33-year leap cycle (the same table as the
jalaali-js project) and Julian day numbers as the pivot between calendars.
All arithmetic is integer-only, so conversions are deterministic.
"""

import re
from datetime import date
from typing import Optional, Tuple

# Jalali years at which the 33-year leap pattern shifts.
BREAKS = (
    -61, 9, 38, 199, 426, 686, 756, 818, 1111, 1181,
    1210, 1635, 2060, 2097, 2192, 2262, 2324, 2394, 2456, 3178,
)

JALALI_DATE_RE = re.compile(r"^\s*(\d{4})\s*[/\-]\s*(\d{1,2})\s*[/\-]\s*(\d{1,2})")


def _div(a: int, b: int) -> int:
    # Truncating division; the leap formulas depend on rounding toward zero.
    return int(a / b)


def _mod(a: int, b: int) -> int:
    return a - _div(a, b) * b


def _jal_cal(jy: int) -> Tuple[int, int, int]:
    """
    Return (leap, gregorian_year, march_day) for Jalali year ``jy``.

    ``leap`` is the number of years since the last leap year (0 means ``jy``
    is leap); ``march_day`` is the March day of Farvardin 1st.
    """
    if jy < BREAKS[0] or jy >= BREAKS[-1]:
        raise ValueError(f"Jalali year {jy} is out of the supported range.")

    gy = jy + 621
    leap_j = -14
    jp = BREAKS[0]
    jump = 0
    for jm in BREAKS[1:]:
        jump = jm - jp
        if jy < jm:
            break
        leap_j += _div(jump, 33) * 8 + _div(_mod(jump, 33), 4)
        jp = jm

    n = jy - jp
    leap_j += _div(n, 33) * 8 + _div(_mod(n, 33) + 3, 4)
    if _mod(jump, 33) == 4 and jump - n == 4:
        leap_j += 1

    leap_g = _div(gy, 4) - _div((_div(gy, 100) + 1) * 3, 4) - 150
    march = 20 + leap_j - leap_g

    if jump - n < 6:
        n = n - jump + _div(jump + 4, 33) * 33
    leap = _mod(_mod(n + 1, 33) - 1, 4)
    if leap == -1:
        leap = 4
    return leap, gy, march


def _g2d(gy: int, gm: int, gd: int) -> int:
    d = (
        _div((gy + _div(gm - 8, 6) + 100100) * 1461, 4)
        + _div(153 * _mod(gm + 9, 12) + 2, 5)
        + gd
        - 34840408
    )
    return d - _div(_div(gy + 100100 + _div(gm - 8, 6), 100) * 3, 4) + 752


def _d2g(jdn: int) -> Tuple[int, int, int]:
    j = 4 * jdn + 139361631
    j = j + _div(_div(4 * jdn + 183187720, 146097) * 3, 4) * 4 - 3908
    i = _div(_mod(j, 1461), 4) * 5 + 308
    gd = _div(_mod(i, 153), 5) + 1
    gm = _mod(_div(i, 153), 12) + 1
    gy = _div(j, 1461) - 100100 + _div(8 - gm, 6)
    return gy, gm, gd


def _j2d(jy: int, jm: int, jd: int) -> int:
    _, gy, march = _jal_cal(jy)
    return _g2d(gy, 3, march) + (jm - 1) * 31 - _div(jm, 7) * (jm - 7) + jd - 1


def _d2j(jdn: int) -> Tuple[int, int, int]:
    gy = _d2g(jdn)[0]
    jy = gy - 621
    leap, _, march = _jal_cal(jy)
    k = jdn - _g2d(gy, 3, march)
    if k >= 0:
        if k <= 185:
            return jy, 1 + _div(k, 31), _mod(k, 31) + 1
        k -= 186
    else:
        jy -= 1
        k += 179
        if leap == 1:
            k += 1
    return jy, 7 + _div(k, 30), _mod(k, 30) + 1


def is_jalali_leap(jy: int) -> bool:
    return _jal_cal(jy)[0] == 0


def jalali_month_length(jy: int, jm: int) -> int:
    if jm <= 6:
        return 31
    if jm <= 11:
        return 30
    return 30 if is_jalali_leap(jy) else 29


def is_valid_jalali(jy: int, jm: int, jd: int) -> bool:
    if not BREAKS[0] <= jy < BREAKS[-1]:
        return False
    if not 1 <= jm <= 12:
        return False
    return 1 <= jd <= jalali_month_length(jy, jm)


def jalali_to_gregorian(jy: int, jm: int, jd: int) -> date:
    """Convert a Jalali date to a ``datetime.date``; raises ValueError if invalid."""
    if not is_valid_jalali(jy, jm, jd):
        raise ValueError(f"Invalid Jalali date {jy}/{jm}/{jd}.")
    return date(*_d2g(_j2d(jy, jm, jd)))


def gregorian_to_jalali(value: date) -> Tuple[int, int, int]:
    return _d2j(_g2d(value.year, value.month, value.day))


def parse_jalali_text(text) -> Optional[Tuple[int, int, int]]:
    """Pull ``(year, month, day)`` from the start of a ``1404/10/18``-style string."""
    if text is None:
        return None
    match = JALALI_DATE_RE.match(str(text))
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def format_jalali(jy: int, jm: int, jd: int) -> str:
    return f"{jy}/{jm:02d}/{jd:02d}"


def to_jalali_text(value: Optional[date]) -> str:
    if value is None:
        return ""
    return format_jalali(*gregorian_to_jalali(value))
