"""Venue registry: lookup, ordering and administration of exam venues."""
import logging

from sqlalchemy.exc import IntegrityError

from .db_models import ExamType, SeatAllocationDB, VenueDB
from .errors import (
    AllVenuesUnavailable,
    DuplicateVenueName,
    NoVenuesSelected,
    VenueInUse,
    VenueNotFound,
    VenueUnavailable,
)

logger = logging.getLogger(__name__)


def order_venues(venues):
    return sorted(venues, key=lambda v: (v.name, v.id))


def list_venues(db, exam_type=None, available_only=False):
    query = db.query(VenueDB)
    if available_only:
        query = query.filter(VenueDB.is_available.is_(True))
    if exam_type is not None:
        query = query.filter(VenueDB.exam_type.in_([ExamType(exam_type), ExamType.ALL]))
    return order_venues(query.all())


def get_venue(db, venue_id):
    venue = db.get(VenueDB, venue_id)
    if venue is None:
        raise VenueNotFound(f"Venue {venue_id} not found")
    return venue


def get_available_venue(db, venue_id):
    venue = get_venue(db, venue_id)
    if not venue.is_available:
        raise VenueUnavailable(f"Venue {venue.name} is not available")
    return venue


def venues_by_name(db):
    """Available venues keyed by their exact (trimmed) name."""
    return {v.name.strip(): v for v in list_venues(db, available_only=True)}


def select_venues(db, venue_ids=None, exam_type=None):
    """Resolve the venues an auto-allocation run will fill, in fill order.

    With no explicit list every available venue suited to ``exam_type`` is
    used, ordered by name. An explicit list keeps the caller's order, drops
    repeats and skips unavailable venues.
    """
    if venue_ids is None:
        venues = list_venues(db, exam_type=exam_type, available_only=True)
        if not venues:
            raise NoVenuesSelected("No available venues found; add venues first")
        return venues

    if not venue_ids:
        raise NoVenuesSelected("Select at least one venue")

    selected = []
    seen = set()
    for venue_id in venue_ids:
        if venue_id in seen:
            continue
        seen.add(venue_id)
        try:
            selected.append(get_available_venue(db, venue_id))
        except VenueUnavailable as e:
            logger.info("Skipping venue %s: %s", venue_id, e.message)

    if not selected:
        raise AllVenuesUnavailable("None of the selected venues is available")
    return selected


def create_venue(db, name, capacity, block="", exam_type=ExamType.ALL, is_available=True):
    venue = VenueDB(
        name=name.strip(),
        block=block,
        capacity=capacity,
        exam_type=ExamType(exam_type),
        is_available=is_available,
    )
    db.add(venue)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateVenueName(f"Venue {name} already exists")
    db.refresh(venue)
    logger.info("Created venue %s (capacity %d)", venue.name, venue.capacity)
    return venue


def update_venue(db, venue_id, **changes):
    venue = get_venue(db, venue_id)
    for field in ("name", "block", "capacity", "exam_type", "is_available"):
        value = changes.get(field)
        if value is None:
            continue
        if field == "exam_type":
            value = ExamType(value)
        elif field == "name":
            value = value.strip()
        setattr(venue, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateVenueName(f"Venue {changes.get('name')} already exists")
    db.refresh(venue)
    return venue


def delete_venue(db, venue_id):
    venue = get_venue(db, venue_id)
    in_use = db.query(SeatAllocationDB).filter(SeatAllocationDB.venue_id == venue.id).count()
    if in_use:
        raise VenueInUse(f"Venue {venue.name} holds {in_use} seat allocations")

    db.delete(venue)
    db.commit()
    logger.info("Deleted venue %s", venue.name)
