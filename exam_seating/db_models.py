import enum

from sqlalchemy import (
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .config import OVERFLOW_PREFIX
from .database import Base


class ExamType(str, enum.Enum):
    SEMESTER = "Semester"
    INTERNAL = "Internal"
    LAB = "Lab"
    ALL = "All"


def _exam_type_column():
    return Enum(ExamType, values_callable=lambda e: [m.value for m in e])


class StudentDB(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key = True, index = True)
    roll_number = Column(String, unique = True, index = True, nullable = False)
    full_name = Column(String, nullable = False, default = "")
    department = Column(String, nullable = False)
    section = Column(String, nullable = False)


class VenueDB(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    block = Column(String, nullable=False, default="")
    capacity = Column(Integer, nullable=False)
    exam_type = Column(_exam_type_column(), nullable=False, default=ExamType.ALL)
    is_available = Column(Boolean, nullable=False, default=True)


class ExamDB(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    exam_date = Column(String, nullable=True)
    exam_type = Column(_exam_type_column(), nullable=False, default=ExamType.SEMESTER)

    # internal exams are sat by one department only
    department = Column(String, nullable=True)

    registrations = relationship("ExamRegistrationDB", back_populates="exam",
                                 cascade="all, delete-orphan")


class ExamRegistrationDB(Base):
    __tablename__ = "exam_registrations"
    __table_args__ = (UniqueConstraint("exam_id", "student_id"),)

    id = Column(Integer, primary_key=True, index=True)

    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)

    exam = relationship("ExamDB", back_populates="registrations")
    student = relationship("StudentDB")


class SeatAllocationDB(Base):
    __tablename__ = "seat_allocations"
    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_allocation_exam_student"),
        UniqueConstraint("exam_id", "venue_id", "seat_number", name="uq_allocation_exam_seat"),
    )

    id = Column(Integer, primary_key=True, index=True)

    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False)
    seat_number = Column(String, nullable=False)

    exam = relationship("ExamDB")
    student = relationship("StudentDB")
    venue = relationship("VenueDB")

    @property
    def is_overflow(self):
        return self.seat_number.startswith(OVERFLOW_PREFIX)
