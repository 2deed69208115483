"""Manual-allocation CSV parsing.

Each data row is read into an ``AllocationRow`` and checked field by field.
A check either yields the resolved value or a ``RowError``; failed rows are
collected and never abort the batch.
"""
import io
import logging
import re

import pandas as pd

from .errors import InvalidCsv
from .models import ParseResult, Placement, RowError

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = ["Roll Number", "Department", "Venue Name", "Seat Number (Optional)"]

_FIELDS = {
    "roll number": "roll_number",
    "roll no": "roll_number",
    "department": "department",
    "dept": "department",
    "venue name": "venue_name",
    "venue": "venue_name",
    "seat number": "seat_number",
    "seat no": "seat_number",
    "seat": "seat_number",
}
_REQUIRED = {"roll_number", "venue_name"}


class AllocationRow:
    def __init__(self, line, roll_number="", department="", venue_name="", seat_number=""):
        self.line = line
        self.roll_number = roll_number
        self.department = department
        self.venue_name = venue_name
        self.seat_number = seat_number

    def is_blank(self):
        return not any((self.roll_number, self.department, self.venue_name, self.seat_number))


def allocation_csv_template():
    return ",".join(TEMPLATE_COLUMNS) + "\n"


def _normalise_header(name):
    name = str(name).strip().lstrip("\ufeff").lower()
    name = re.sub(r"\(\s*optional\s*\)$", "", name).strip()
    name = re.sub(r"\s+", " ", name.rstrip("."))
    return _FIELDS.get(name)


def _cell(value):
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def read_allocation_rows(content):
    """Parse raw CSV bytes into ``AllocationRow`` objects.

    Raises ``InvalidCsv`` when the file cannot be read or lacks a required
    column.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")

    first_line = content.split(b"\n", 1)[0]
    sep = ";" if b";" in first_line and b"," not in first_line else ","

    try:
        df = pd.read_csv(
            io.BytesIO(content),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise InvalidCsv(f"CSV read failed: {e}")

    columns = {}
    for column in df.columns:
        field = _normalise_header(column)
        if field is None:
            logger.warning("Ignoring unrecognised CSV column %r", column)
        elif field not in columns:
            columns[field] = column

    missing = _REQUIRED - set(columns)
    if missing:
        names = sorted(c for c in TEMPLATE_COLUMNS if _normalise_header(c) in missing)
        raise InvalidCsv(f"Missing columns: {', '.join(names)}")

    rows = []
    for index, record in enumerate(df.to_dict(orient="records")):
        values = {field: _cell(record[column]) for field, column in columns.items()}
        row = AllocationRow(line=index + 2, **values)
        if not row.is_blank():
            rows.append(row)
    return rows


def _check_student(row, students_by_roll, seen_students):
    if not row.roll_number:
        return RowError(row.line, "MissingRollNumber", "Roll number is empty")

    student = students_by_roll.get(row.roll_number)
    if student is None:
        return RowError(row.line, "UnknownStudent",
                        f"Student {row.roll_number} not found", row.roll_number)
    if student.id in seen_students:
        return RowError(row.line, "DuplicateStudent",
                        f"Student {row.roll_number} already allocated on line {seen_students[student.id]}",
                        row.roll_number)
    return student


def _check_department(row, student):
    if row.department and row.department.upper() != student.department.strip().upper():
        return RowError(row.line, "DepartmentMismatch",
                        f"Student {row.roll_number} belongs to {student.department}, not {row.department}",
                        row.roll_number)
    return None


def _check_venue(row, venues_by_name):
    venue = venues_by_name.get(row.venue_name)
    if venue is None:
        return RowError(row.line, "UnknownVenue",
                        f"Venue '{row.venue_name}' not found or unavailable", row.roll_number)
    return venue


def _next_free_seat(taken):
    seat = 1
    while str(seat) in taken:
        seat += 1
    return str(seat)


def parse_allocation_csv(content, students_by_roll, venues_by_name):
    """Validate a manual-allocation CSV against known students and venues.

    ``students_by_roll`` maps roll number to student and ``venues_by_name``
    maps exact venue name to an available venue. Returns a ``ParseResult``
    holding the valid placements and the per-row errors.
    """
    result = ParseResult()
    seats_taken = {}
    seen_students = {}

    for row in read_allocation_rows(content):
        student = _check_student(row, students_by_roll, seen_students)
        if isinstance(student, RowError):
            result.errors.append(student)
            continue

        error = _check_department(row, student)
        if error is not None:
            result.errors.append(error)
            continue

        venue = _check_venue(row, venues_by_name)
        if isinstance(venue, RowError):
            result.errors.append(venue)
            continue

        taken = seats_taken.setdefault(venue.id, set())
        if row.seat_number:
            if row.seat_number in taken:
                result.errors.append(RowError(
                    row.line, "DuplicateSeat",
                    f"Seat {row.seat_number} in {venue.name} is already taken", row.roll_number,
                ))
                continue
            seat_number = row.seat_number
        else:
            seat_number = _next_free_seat(taken)

        taken.add(seat_number)
        seen_students[student.id] = row.line
        result.placements.append(Placement(row.line, student, venue, seat_number))

    for error in result.errors:
        logger.warning("Rejected CSV row: %s", error)

    return result
