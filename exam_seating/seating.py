"""Allocation runs: auto (interleaved) and manual (CSV) seating for an exam."""
import logging

from . import config
from .allocator import allocate_students
from .csv_import import parse_allocation_csv
from .db_models import StudentDB
from .errors import EmptyValidBatch
from .models import AllocationOutcome
from .roster import get_exam, resolve_roster
from .store import replace_allocations
from .venues import select_venues, venues_by_name

logger = logging.getLogger(__name__)


def auto_allocate(db, exam_id, venue_ids=None):
    exam = get_exam(db, exam_id)
    venues = select_venues(db, venue_ids, exam_type=exam.exam_type)
    students = resolve_roster(db, exam)

    logger.info(
        "Auto-allocating exam %s: %d students across %d venues (capacity %d)",
        exam.id, len(students), len(venues), sum(v.capacity for v in venues),
    )

    plans = allocate_students(students, venues)
    outcome = AllocationOutcome(exam.id, replace_allocations(db, exam.id, plans))

    logger.info("Exam %s: %d seated, %d overflow", exam.id, outcome.placed, outcome.overflow)
    return outcome


def manual_allocate(db, exam_id, placements):
    """Persist already-validated placements as the exam's full seating."""
    exam = get_exam(db, exam_id)
    if not placements:
        raise EmptyValidBatch("No valid rows to allocate")
    return AllocationOutcome(exam.id, replace_allocations(db, exam.id, placements))


def _error_summary(errors):
    preview = "; ".join(str(e) for e in errors[:config.CSV_ERROR_PREVIEW])
    if len(errors) > config.CSV_ERROR_PREVIEW:
        preview += f"... ({len(errors) - config.CSV_ERROR_PREVIEW} more errors)"
    return preview


def upload_allocation_csv(db, exam_id, content):
    """Parse a manual-allocation CSV and seat its valid rows.

    Returns ``(outcome, log)``; the log has one entry per data row, both
    confirmations and rejections.
    """
    exam = get_exam(db, exam_id)
    students = {s.roll_number.strip(): s for s in db.query(StudentDB).all()}

    result = parse_allocation_csv(content, students, venues_by_name(db))
    if not result.placements:
        message = "No valid rows found in CSV"
        if result.errors:
            message += f". Errors: {_error_summary(result.errors)}"
        raise EmptyValidBatch(message, log=result.log)

    outcome = manual_allocate(db, exam.id, result.placements)
    logger.info(
        "Exam %s: manual upload seated %d students, rejected %d rows",
        exam.id, len(outcome.allocations), len(result.errors),
    )
    return outcome, result.log
