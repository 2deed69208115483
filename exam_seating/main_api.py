import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from . import reports, store
from .config import configure_logging
from .csv_import import allocation_csv_template
from .database import get_db, init_db
from .db_models import ExamDB, ExamRegistrationDB, ExamType, StudentDB
from .errors import NoAllocations, SeatingError, StudentNotFound
from .roster import get_exam
from .seating import auto_allocate, upload_allocation_csv
from .student_import import create_student, import_students
from . import venues as venue_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    configure_logging()
    init_db()
    yield


app = FastAPI(title = "Exam Seating API", lifespan = lifespan)


@app.exception_handler(SeatingError)
async def seating_error_handler(request: Request, exc: SeatingError):
    logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _venue_dict(v):
    return {
        "id": v.id,
        "name": v.name,
        "block": v.block,
        "capacity": v.capacity,
        "exam_type": v.exam_type.value,
        "is_available": v.is_available,
    }


def _student_dict(s):
    return {
        "id": s.id,
        "roll_number": s.roll_number,
        "full_name": s.full_name,
        "department": s.department,
        "section": s.section,
    }


def _exam_dict(e):
    return {
        "id": e.id,
        "title": e.title,
        "exam_date": e.exam_date,
        "exam_type": e.exam_type.value,
        "department": e.department,
    }


def _allocation_dict(a):
    return {
        "id": a.id,
        "exam_id": a.exam_id,
        "student": _student_dict(a.student),
        "venue": {"id": a.venue.id, "name": a.venue.name, "block": a.venue.block},
        "seat_number": a.seat_number,
        "overflow": a.is_overflow,
    }


@app.get("/")
def root():
    return {"message": "Exam Seating API is running"}


# venues

class VenueCreate(BaseModel):
    name: str = Field(min_length=1)
    block: str = ""
    capacity: int = Field(gt=0)
    exam_type: ExamType = ExamType.ALL
    is_available: bool = True


class VenueUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    block: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    exam_type: Optional[ExamType] = None
    is_available: Optional[bool] = None


@app.get("/venues")
def get_venues(exam_type: Optional[ExamType] = None, available_only: bool = False,
               db: Session = Depends(get_db)):
    return [
        _venue_dict(v)
        for v in venue_registry.list_venues(db, exam_type=exam_type, available_only=available_only)
    ]


@app.post("/venues", status_code=201)
def create_venue(req: VenueCreate, db: Session = Depends(get_db)):
    return _venue_dict(venue_registry.create_venue(db, **req.model_dump()))


@app.put("/venues/{venue_id}")
def update_venue(venue_id: int, req: VenueUpdate, db: Session = Depends(get_db)):
    return _venue_dict(venue_registry.update_venue(db, venue_id, **req.model_dump(exclude_none=True)))


@app.delete("/venues/{venue_id}")
def delete_venue(venue_id: int, db: Session = Depends(get_db)):
    venue_registry.delete_venue(db, venue_id)
    return {"message": "Venue deleted", "venue_id": venue_id}


# students and exams

class StudentCreate(BaseModel):
    roll_number: str = Field(min_length=1)
    department: str = Field(min_length=1)
    section: str = Field(min_length=1)
    full_name: str = ""


class ExamCreate(BaseModel):
    title: str = Field(min_length=1)
    exam_date: Optional[str] = None
    exam_type: ExamType = ExamType.SEMESTER
    department: Optional[str] = None


class RegistrationRequest(BaseModel):
    roll_numbers: List[str]


@app.get("/students")
def get_students(db: Session = Depends(get_db)):
    return [_student_dict(s) for s in db.query(StudentDB).order_by(StudentDB.roll_number).all()]


@app.post("/students", status_code=201)
def add_student(req: StudentCreate, db: Session = Depends(get_db)):
    return _student_dict(create_student(db, **req.model_dump()))


@app.post("/students/import")
async def import_students_from_sheet(file: UploadFile = File(...), db: Session = Depends(get_db)):
    content = await file.read()
    result = import_students(db, content, file.filename or "")
    return {"message": "Student import completed", **result}


@app.get("/exams")
def get_exams(db: Session = Depends(get_db)):
    return [_exam_dict(e) for e in db.query(ExamDB).order_by(ExamDB.id).all()]


@app.post("/exams", status_code=201)
def create_exam(req: ExamCreate, db: Session = Depends(get_db)):
    exam = ExamDB(**req.model_dump())
    db.add(exam)
    db.commit()
    db.refresh(exam)
    return _exam_dict(exam)


@app.post("/exams/{exam_id}/registrations")
def register_students(exam_id: int, req: RegistrationRequest, db: Session = Depends(get_db)):
    exam = get_exam(db, exam_id)
    registered = {r.student_id for r in exam.registrations}

    added = 0
    for roll_number in req.roll_numbers:
        student = db.query(StudentDB).filter(StudentDB.roll_number == roll_number.strip()).first()
        if student is None:
            db.rollback()
            raise StudentNotFound(f"Student {roll_number} not found")
        if student.id in registered:
            continue
        db.add(ExamRegistrationDB(exam_id=exam.id, student_id=student.id))
        registered.add(student.id)
        added += 1

    db.commit()
    return {"exam_id": exam.id, "registered": added, "total": len(registered)}


# seating

class AutoAllocateRequest(BaseModel):
    exam_id: int
    venue_ids: Optional[List[int]] = None


@app.post("/exam-seating/allocate")
async def allocate_from_csv(exam_id: int = Form(...), file: UploadFile = File(...),
                            db: Session = Depends(get_db)):
    content = await file.read()
    logger.info("Manual allocation upload for exam %s: %s (%d bytes)",
                exam_id, file.filename, len(content))

    outcome, log = upload_allocation_csv(db, exam_id, content)
    rejected = sum(1 for entry in log if entry["status"] == "error")
    return {
        "message": "Allocation completed",
        "exam_id": exam_id,
        "allocated": len(outcome.allocations),
        "rejected": rejected,
        "log": log,
    }


@app.post("/exam-seating/auto-allocate")
def auto_allocate_exam(req: AutoAllocateRequest, db: Session = Depends(get_db)):
    outcome = auto_allocate(db, req.exam_id, req.venue_ids)
    return {
        "message": "Allocation completed",
        "exam_id": req.exam_id,
        "placed": outcome.placed,
        "overflow": outcome.overflow,
        "total": len(outcome.allocations),
    }


@app.get("/exam-seating/template")
def allocation_template():
    return Response(
        content=allocation_csv_template(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="seating_allocation_template.csv"'},
    )


@app.get("/exam-seating/all")
def all_allocations(db: Session = Depends(get_db)):
    return [_allocation_dict(a) for a in store.get_all_allocations(db)]


@app.get("/exam-seating/exam/{exam_id}")
def exam_allocations(exam_id: int, db: Session = Depends(get_db)):
    get_exam(db, exam_id)
    return [_allocation_dict(a) for a in store.get_allocations_for_exam(db, exam_id)]


@app.get("/exam-seating/exam/{exam_id}/summary")
def exam_allocation_summary(exam_id: int, db: Session = Depends(get_db)):
    get_exam(db, exam_id)
    return reports.group_by_venue(store.get_allocations_for_exam(db, exam_id))


@app.get("/exam-seating/student/{student_id}")
def student_allocations(student_id: int, db: Session = Depends(get_db)):
    if db.get(StudentDB, student_id) is None:
        raise StudentNotFound(f"Student {student_id} not found")
    return [_allocation_dict(a) for a in store.get_allocations_for_student(db, student_id)]


def _allocations_for_export(db, exam_id):
    exam = get_exam(db, exam_id)
    allocations = store.get_allocations_for_exam(db, exam_id)
    if not allocations:
        raise NoAllocations("No allocation found. Allocate first.")
    return exam, allocations


@app.get("/export/allocation/excel")
def export_allocation_excel(exam_id: int, db: Session = Depends(get_db)):
    exam, allocations = _allocations_for_export(db, exam_id)

    file_path = reports.export_excel(exam.id, allocations)
    return FileResponse(
        path=str(file_path),
        filename=file_path.name,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )


@app.get("/export/allocation/pdf")
def export_allocation_pdf(exam_id: int, db: Session = Depends(get_db)):
    exam, allocations = _allocations_for_export(db, exam_id)

    file_path = reports.export_pdf(exam, allocations)
    return FileResponse(
        path=str(file_path),
        filename=file_path.name,
        media_type="application/pdf"
    )
