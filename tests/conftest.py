import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exam_seating import config, db_models  # noqa: F401
from exam_seating.database import Base, get_db
from exam_seating.db_models import ExamDB, ExamType, StudentDB, VenueDB
from exam_seating.main_api import app

# keep test output readable
logging.disable(logging.CRITICAL)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "EXPORT_DIR", tmp_path / "exports")

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_student(db):
    def _add(roll_number, department, section, full_name=""):
        student = StudentDB(roll_number=roll_number, department=department,
                            section=section, full_name=full_name or f"Student {roll_number}")
        db.add(student)
        db.commit()
        return student
    return _add


@pytest.fixture
def add_venue(db):
    def _add(name, capacity, exam_type=ExamType.ALL, is_available=True, block="Main"):
        venue = VenueDB(name=name, capacity=capacity, exam_type=exam_type,
                        is_available=is_available, block=block)
        db.add(venue)
        db.commit()
        return venue
    return _add


@pytest.fixture
def add_exam(db):
    def _add(title="Data Structures", exam_type=ExamType.SEMESTER, department=None):
        exam = ExamDB(title=title, exam_date="2026-11-02", exam_type=exam_type, department=department)
        db.add(exam)
        db.commit()
        return exam
    return _add
