"""Application configuration."""
import logging
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

DATABASE_URL = os.environ.get("SEATING_DATABASE_URL", "sqlite:///./exam_seating.db")
LOG_LEVEL = os.environ.get("SEATING_LOG_LEVEL", "INFO")
EXPORT_DIR = Path(os.environ.get("SEATING_EXPORT_DIR", BASE_DIR / "exports"))

# how many row errors an operation-level message quotes before summarising
CSV_ERROR_PREVIEW = int(os.environ.get("SEATING_CSV_ERROR_PREVIEW", "5"))

OVERFLOW_PREFIX = "OVF-"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level=None):
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
