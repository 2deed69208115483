"""Anti-clustering seat allocation.

Students are grouped by (department, section), the groups are drawn from
round robin in key order, and the resulting queue fills venues seat by
seat. Whoever is left once every venue is full gets an ``OVF-n`` seat in
the last venue so that no student is ever dropped.
"""
import logging
from collections import deque

from .config import OVERFLOW_PREFIX
from .errors import NoStudentsFound, NoVenuesSelected
from .models import SeatPlan

logger = logging.getLogger(__name__)


def group_key(student):
    return (student.department.strip().upper(), student.section.strip().upper())


def group_students(students):
    """Return ``[(key, [students...]), ...]`` ordered by key, each group by roll number."""
    groups = {}
    for student in students:
        groups.setdefault(group_key(student), []).append(student)

    return [
        (key, sorted(groups[key], key=lambda s: s.roll_number))
        for key in sorted(groups)
    ]


def interleave(students):
    """Round-robin draw across groups, skipping exhausted ones."""
    queues = [deque(members) for _, members in group_students(students)]
    ordered = []

    while queues:
        for queue in queues:
            ordered.append(queue.popleft())
        queues = [q for q in queues if q]

    return ordered


def allocate_students(students, venues):
    """Seat ``students`` across ``venues`` (already in allocation order).

    Returns one ``SeatPlan`` per student. Seats in each venue are numbered
    ``1..capacity``; students beyond total capacity are attached to the
    last venue with overflow seat numbers.
    """
    if not venues:
        raise NoVenuesSelected("No venues selected for allocation")
    if not students:
        raise NoStudentsFound("No eligible students to allocate")

    queue = deque(interleave(students))
    allocation = []

    for venue in venues:
        seat = 1
        while queue and seat <= venue.capacity:
            allocation.append(SeatPlan(queue.popleft(), venue, str(seat)))
            seat += 1

        if not queue:
            break

    last_venue = venues[-1]
    overflow = 0
    while queue:
        overflow += 1
        allocation.append(
            SeatPlan(queue.popleft(), last_venue, f"{OVERFLOW_PREFIX}{overflow}", overflow=True)
        )

    if overflow:
        total_capacity = sum(v.capacity for v in venues)
        logger.warning(
            "Capacity %d short of %d students; %d overflow seats in %s",
            total_capacity, len(students), overflow, last_venue.name,
        )

    return allocation
