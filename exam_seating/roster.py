"""Resolve the students eligible to sit an exam."""
from .db_models import ExamDB, ExamRegistrationDB, StudentDB
from .errors import ExamNotFound, NoStudentsFound


def get_exam(db, exam_id):
    exam = db.get(ExamDB, exam_id)
    if exam is None:
        raise ExamNotFound(f"Exam {exam_id} not found")
    return exam


def resolve_roster(db, exam):
    """Students registered for ``exam``, ordered by roll number.

    An exam without registrations is open to every student, or to its own
    department's students when the exam names one.
    """
    registered = (
        db.query(StudentDB)
        .join(ExamRegistrationDB, ExamRegistrationDB.student_id == StudentDB.id)
        .filter(ExamRegistrationDB.exam_id == exam.id)
    )

    if registered.count():
        students = registered.order_by(StudentDB.roll_number).all()
    else:
        query = db.query(StudentDB)
        if exam.department and exam.department.strip():
            dept = exam.department.strip().upper()
            students = [
                s for s in query.order_by(StudentDB.roll_number).all()
                if s.department.strip().upper() == dept
            ]
        else:
            students = query.order_by(StudentDB.roll_number).all()

    if not students:
        raise NoStudentsFound(f"No eligible students found for exam {exam.id}")
    return students
