import io
import logging

import pandas as pd
from sqlalchemy.exc import IntegrityError

from .db_models import StudentDB
from .errors import DuplicateRollNumber, InvalidCsv

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"roll_number", "full_name", "department", "section"}


def read_student_sheet(content, filename=""):
    """Load a student sheet (Excel or CSV) into a DataFrame with normalised headers."""
    try:
        if filename.lower().endswith((".xlsx", ".xls")):
            df = pd.read_excel(io.BytesIO(content), dtype=str)
        else:
            df = pd.read_csv(io.BytesIO(content), dtype=str, encoding="utf-8-sig")
    except Exception as e:
        raise InvalidCsv(f"Student sheet read failed: {e}")

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]

    if not REQUIRED_COLUMNS.issubset(df.columns):
        missing = REQUIRED_COLUMNS - set(df.columns)
        raise InvalidCsv(f"Missing columns: {sorted(missing)}")

    return df.fillna("")


def import_students(db, content, filename=""):
    df = read_student_sheet(content, filename)

    known = {roll for (roll,) in db.query(StudentDB.roll_number).all()}
    inserted = 0
    skipped = 0

    for _, row in df.iterrows():
        roll_number = str(row["roll_number"]).strip()
        if not roll_number or roll_number in known:
            skipped += 1
            continue

        db.add(StudentDB(
            roll_number=roll_number,
            full_name=str(row["full_name"]).strip(),
            department=str(row["department"]).strip(),
            section=str(row["section"]).strip(),
        ))
        known.add(roll_number)
        inserted += 1

    db.commit()
    logger.info("Student import: %d inserted, %d skipped", inserted, skipped)

    return {"inserted": inserted, "skipped_duplicates": skipped}


def create_student(db, roll_number, department, section, full_name=""):
    student = StudentDB(
        roll_number=roll_number.strip(),
        full_name=full_name,
        department=department.strip(),
        section=section.strip(),
    )
    db.add(student)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateRollNumber(f"Student {roll_number} already exists")
    db.refresh(student)
    return student
