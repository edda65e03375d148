# exam_scheduling/utils/excel_parser.py

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import pandas as pd

from exam_scheduling.constants import CanonicalField
from exam_scheduling.entities import ParsedExamRecord

from .column_mapper import SheetStructureError, resolve_headers
from .temporal import (
    coerce_count,
    coerce_gregorian_date,
    coerce_jalali_date,
    coerce_minutes,
    coerce_time,
    is_missing,
    parse_date_time,
)

logger = logging.getLogger(__name__)


def clean_text(value: Any) -> str:
    if is_missing(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        # Numeric course codes come back from Excel as 1234.0
        return str(int(value))
    return " ".join(str(value).split())


def _cell(row: Sequence, header_map: Mapping[CanonicalField, int], field: CanonicalField) -> Any:
    index = header_map.get(field)
    if index is None or index >= len(row):
        return None
    value = row[index]
    return None if is_missing(value) else value


def extract_row(
    row: Sequence,
    header_map: Mapping[CanonicalField, int],
    row_number: Optional[int] = None,
) -> Optional[ParsedExamRecord]:
    """
    Build a ParsedExamRecord from one data row, or None when the title is blank.

    A combined date/time column wins over the separate date, time and
    duration columns. Values that are present but unreadable are dropped and
    recorded in ``record.notes``.
    """
    title = clean_text(_cell(row, header_map, CanonicalField.TITLE))
    if not title:
        return None

    record = ParsedExamRecord(
        title=title,
        row_number=row_number,
        course_code=clean_text(_cell(row, header_map, CanonicalField.COURSE_CODE)) or None,
    )

    combined_raw = _cell(row, header_map, CanonicalField.EXAM_DATETIME)
    if combined_raw is not None:
        combined = parse_date_time(combined_raw)
        if combined.is_empty():
            record.notes.append(f"Unreadable exam date/time '{combined_raw}' was ignored.")
        record.date = combined.date
        record.start = combined.start
        if combined.duration_minutes:
            record.duration_minutes = combined.duration_minutes

    if record.date is None:
        raw_date = _cell(row, header_map, CanonicalField.DATE)
        if raw_date is not None:
            record.date = coerce_gregorian_date(raw_date) or coerce_jalali_date(raw_date)
            if record.date is None:
                record.notes.append(f"Unreadable date '{raw_date}' was ignored.")

    if record.date is None:
        raw_jalali = _cell(row, header_map, CanonicalField.DATE_JALALI)
        if raw_jalali is not None:
            record.date = coerce_jalali_date(raw_jalali)
            if record.date is None:
                record.notes.append(f"Unreadable Jalali date '{raw_jalali}' was ignored.")

    if record.start is None:
        raw_time = _cell(row, header_map, CanonicalField.TIME)
        if raw_time is not None:
            record.start = coerce_time(raw_time)
            if record.start is None:
                record.notes.append(f"Unreadable time '{raw_time}' was ignored.")

    if record.duration_minutes is None:
        raw_duration = _cell(row, header_map, CanonicalField.DURATION_MINUTES)
        if raw_duration is not None:
            duration = coerce_minutes(raw_duration)
            if duration is None or duration <= 0:
                record.notes.append(f"Unreadable duration '{raw_duration}' was ignored.")
            else:
                record.duration_minutes = duration

    raw_students = _cell(row, header_map, CanonicalField.EXPECTED_STUDENTS)
    if raw_students is not None:
        record.expected_students = coerce_count(raw_students)
        if record.expected_students is None:
            record.notes.append(f"Unreadable student count '{raw_students}' was ignored.")

    record.location = clean_text(_cell(row, header_map, CanonicalField.LOCATION)) or None
    return record


def _error(filename: str, message: str) -> Dict[str, Any]:
    return {"status": "error", "file": filename, "message": message}


def read_exam_sheet(file) -> Dict[str, Any]:
    """
    Parse the first sheet of an exam workbook.

    The first non-empty row is the header row. Returns ``status`` "ok" with
    the parsed records, or "error" with a message when the workbook cannot
    be imported at all.
    """
    filename = getattr(file, "name", "uploaded_file")

    try:
        raw_df = pd.read_excel(file, sheet_name=0, header=None, dtype=object)
    except Exception as exc:
        logger.warning("Could not read workbook %s: %s", filename, exc)
        return _error(filename, "Could not read the workbook. Upload a valid .xlsx or .xls file.")

    raw_df = raw_df.dropna(how="all")
    if raw_df.empty:
        return _error(filename, "The first sheet is empty.")

    header_index = raw_df.index[0]
    headers = raw_df.loc[header_index].tolist()
    data = raw_df.loc[raw_df.index > header_index]
    if data.empty:
        return _error(filename, "The sheet has a header row but no data rows.")

    try:
        header_map = resolve_headers(headers)
    except SheetStructureError as exc:
        return _error(filename, str(exc))

    records = []
    skipped = 0
    for index, values in data.iterrows():
        row = [None if is_missing(value) else value for value in values.tolist()]
        # Spreadsheet rows are 1-based and header=None keeps the sheet's own numbering.
        record = extract_row(row, header_map, row_number=int(index) + 1)
        if record is None:
            skipped += 1
            continue
        records.append(record)

    logger.debug("Parsed %s exam rows from %s (%s skipped).", len(records), filename, skipped)
    return {
        "status": "ok",
        "file": filename,
        "headers": [clean_text(h) for h in headers if not is_missing(h)],
        "header_map": {field.value: index for field, index in header_map.items()},
        "records": records,
        "skipped": skipped,
        "total_rows": len(data.index),
    }
