"""Seat allocation persistence.

An exam's allocations are only ever replaced as a whole. The delete of
the old set and the insert of the new one share one transaction, and
replacements for the same exam are serialised by a per-exam lock (plus a
``SELECT ... FOR UPDATE`` on the exam row where the backend supports it).
"""
import logging
import threading
import weakref

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from .db_models import ExamDB, SeatAllocationDB
from .errors import AllocationConflict, ExamNotFound

logger = logging.getLogger(__name__)

# entries vanish once no caller holds the lock
_exam_locks = weakref.WeakValueDictionary()
_exam_locks_guard = threading.Lock()


def exam_lock(exam_id):
    with _exam_locks_guard:
        lock = _exam_locks.get(exam_id)
        if lock is None:
            lock = _exam_locks[exam_id] = threading.Lock()
        return lock


def replace_allocations(db, exam_id, plans):
    """Atomically swap the exam's allocations for ``plans``.

    On any database error the transaction is rolled back, leaving the
    previous allocations untouched, and ``AllocationConflict`` is raised.
    """
    if db.get(ExamDB, exam_id) is None:
        raise ExamNotFound(f"Exam {exam_id} not found")

    with exam_lock(exam_id):
        db.query(ExamDB).filter(ExamDB.id == exam_id).with_for_update().first()

        rows = [
            SeatAllocationDB(
                exam_id=exam_id,
                student_id=plan.student.id,
                venue_id=plan.venue.id,
                seat_number=plan.seat_number,
            )
            for plan in plans
        ]

        try:
            removed = (
                db.query(SeatAllocationDB)
                .filter(SeatAllocationDB.exam_id == exam_id)
                .delete(synchronize_session=False)
            )
            db.add_all(rows)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Replacing allocations for exam %s failed; rolled back", exam_id)
            raise AllocationConflict(
                f"Could not save allocations for exam {exam_id}; previous allocations kept"
            ) from e

    logger.info("Exam %s: replaced %d allocations with %d", exam_id, removed, len(rows))
    return rows


def _allocations(db):
    return db.query(SeatAllocationDB).options(
        joinedload(SeatAllocationDB.student),
        joinedload(SeatAllocationDB.venue),
    )


def get_allocations_for_exam(db, exam_id):
    return (
        _allocations(db)
        .filter(SeatAllocationDB.exam_id == exam_id)
        .order_by(SeatAllocationDB.id)
        .all()
    )


def get_all_allocations(db):
    return _allocations(db).order_by(SeatAllocationDB.exam_id, SeatAllocationDB.id).all()


def get_allocations_for_student(db, student_id):
    return (
        _allocations(db)
        .filter(SeatAllocationDB.student_id == student_id)
        .order_by(SeatAllocationDB.exam_id)
        .all()
    )
