from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL


def _connect_args(url):
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    DATABASE_URL,
    connect_args = _connect_args(DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit = False, autoflush = False, bind = engine)

Base = declarative_base()


def init_db(bind=None):
    # register the tables on Base before creating them
    from . import db_models  # noqa: F401

    Base.metadata.create_all(bind = bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
