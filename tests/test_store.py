import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from exam_seating import store
from exam_seating.database import Base
from exam_seating.db_models import ExamDB, StudentDB, VenueDB
from exam_seating.errors import AllocationConflict, ExamNotFound
from exam_seating.models import SeatPlan
from exam_seating.store import (
    exam_lock,
    get_all_allocations,
    get_allocations_for_exam,
    get_allocations_for_student,
    replace_allocations,
)


@pytest.fixture
def setup(add_student, add_venue, add_exam):
    students = [add_student(f"21CS{n:03d}", "CSE", "A") for n in range(1, 5)]
    hall = add_venue("Hall A", 10)
    exams = [add_exam("Maths"), add_exam("Physics")]
    return students, hall, exams


def snapshot(db, exam_id):
    return [(a.student.roll_number, a.venue.name, a.seat_number)
            for a in get_allocations_for_exam(db, exam_id)]


def test_replace_discards_previous_set(db, setup):
    students, hall, (exam, _) = setup
    replace_allocations(db, exam.id, [SeatPlan(s, hall, str(i)) for i, s in enumerate(students, 1)])
    replace_allocations(db, exam.id, [SeatPlan(students[0], hall, "9")])

    assert snapshot(db, exam.id) == [("21CS001", "Hall A", "9")]


def test_failed_replace_keeps_previous_state(db, setup):
    students, hall, (exam, _) = setup
    replace_allocations(db, exam.id, [SeatPlan(s, hall, str(i)) for i, s in enumerate(students, 1)])
    before = snapshot(db, exam.id)

    clashing = [SeatPlan(students[0], hall, "1"), SeatPlan(students[1], hall, "1")]
    with pytest.raises(AllocationConflict):
        replace_allocations(db, exam.id, clashing)

    assert snapshot(db, exam.id) == before


def test_same_student_twice_rejected(db, setup):
    students, hall, (exam, _) = setup
    with pytest.raises(AllocationConflict):
        replace_allocations(db, exam.id, [SeatPlan(students[0], hall, "1"), SeatPlan(students[0], hall, "2")])

    assert snapshot(db, exam.id) == []


def test_exams_are_independent(db, setup):
    students, hall, (maths, physics) = setup
    replace_allocations(db, maths.id, [SeatPlan(students[0], hall, "1")])
    replace_allocations(db, physics.id, [SeatPlan(students[1], hall, "1")])
    replace_allocations(db, maths.id, [SeatPlan(students[2], hall, "1")])

    assert snapshot(db, physics.id) == [("21CS002", "Hall A", "1")]
    assert len(get_all_allocations(db)) == 2
    assert [a.exam_id for a in get_allocations_for_student(db, students[1].id)] == [physics.id]


def test_unknown_exam(db, setup):
    students, hall, _ = setup
    with pytest.raises(ExamNotFound):
        replace_allocations(db, 999, [SeatPlan(students[0], hall, "1")])


def test_lock_per_exam():
    assert exam_lock(1) is exam_lock(1)
    assert exam_lock(1) is not exam_lock(2)


def test_unknown_exam_leaves_no_lock(db, setup):
    students, hall, _ = setup
    with pytest.raises(ExamNotFound):
        replace_allocations(db, 999, [SeatPlan(students[0], hall, "1")])

    assert 999 not in store._exam_locks


@pytest.fixture
def file_sessions(tmp_path):
    """Sessions on separate connections to one SQLite file, usable from threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'seating.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = Session()
    db.add_all([StudentDB(roll_number=f"21CS{n:03d}", department="CSE", section="A") for n in range(1, 7)])
    db.add(VenueDB(name="Hall A", capacity=50))
    db.add_all([ExamDB(title="Maths"), ExamDB(title="Physics")])
    db.commit()
    db.close()

    yield Session
    engine.dispose()


def plan_set(db, first_seat):
    students = db.query(StudentDB).order_by(StudentDB.roll_number).all()
    hall = db.query(VenueDB).one()
    return [SeatPlan(s, hall, str(first_seat + i)) for i, s in enumerate(students)]


def seat_set(Session, exam_id):
    db = Session()
    try:
        return sorted((a.student.roll_number, a.seat_number) for a in get_allocations_for_exam(db, exam_id))
    finally:
        db.close()


def run_threads(*targets):
    errors = []

    def guarded(target):
        try:
            target()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=guarded, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not any(t.is_alive() for t in threads)
    return errors


def replacer(Session, exam_id, first_seat, barrier=None):
    def _run():
        db = Session()
        try:
            plans = plan_set(db, first_seat)
            if barrier is not None:
                barrier.wait()
            replace_allocations(db, exam_id, plans)
        finally:
            db.close()
    return _run


def expected(Session, first_seat):
    db = Session()
    try:
        return sorted((p.student.roll_number, p.seat_number) for p in plan_set(db, first_seat))
    finally:
        db.close()


def test_concurrent_replacements_of_one_exam(file_sessions):
    barrier = threading.Barrier(2)
    errors = run_threads(
        replacer(file_sessions, 1, 1, barrier),
        replacer(file_sessions, 1, 100, barrier),
    )

    assert errors == []
    assert seat_set(file_sessions, 1) in (expected(file_sessions, 1), expected(file_sessions, 100))


def test_lock_on_one_exam_does_not_block_another(file_sessions):
    done = threading.Event()

    def replace_physics():
        replacer(file_sessions, 2, 1)()
        done.set()

    with exam_lock(1):
        worker = threading.Thread(target=replace_physics)
        worker.start()
        assert done.wait(timeout=30)
    worker.join()

    assert seat_set(file_sessions, 2) == expected(file_sessions, 1)


def test_readers_never_see_partial_set(file_sessions):
    replacer(file_sessions, 1, 1)()
    old, new = expected(file_sessions, 1), expected(file_sessions, 100)
    barrier = threading.Barrier(3)
    finished = threading.Event()
    seen = []

    def writer():
        try:
            replacer(file_sessions, 1, 100, barrier)()
            for _ in range(10):
                replacer(file_sessions, 1, 1)()
                replacer(file_sessions, 1, 100)()
        finally:
            finished.set()

    def reader():
        barrier.wait()
        while not finished.is_set():
            seen.append(seat_set(file_sessions, 1))

    errors = run_threads(writer, reader, reader)

    assert errors == []
    assert seen
    assert all(snapshot in (old, new) for snapshot in seen)
