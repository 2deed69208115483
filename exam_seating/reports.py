"""Read-side helpers: venue summaries and Excel/PDF seating sheets."""
from pathlib import Path

import pandas as pd
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from . import config


def _seat_index(text):
    try:
        return int(text)
    except ValueError:
        return None


def seat_sort_key(allocation):
    """Venue name, then numbered seats in numeric order, then overflow seats."""
    seat = allocation.seat_number
    if allocation.is_overflow:
        index = _seat_index(seat[len(config.OVERFLOW_PREFIX):])
        return (allocation.venue.name, 2, index or 0, seat)
    index = _seat_index(seat)
    if index is not None:
        return (allocation.venue.name, 0, index, seat)
    return (allocation.venue.name, 1, 0, seat)


def group_by_venue(allocations):
    summary = {}
    for a in sorted(allocations, key=seat_sort_key):
        entry = summary.setdefault(a.venue.id, {
            "venue_id": a.venue.id,
            "venue_name": a.venue.name,
            "block": a.venue.block,
            "capacity": a.venue.capacity,
            "placed": 0,
            "overflow": 0,
            "seats": [],
        })
        entry["overflow" if a.is_overflow else "placed"] += 1
        entry["seats"].append({
            "seat_number": a.seat_number,
            "roll_number": a.student.roll_number,
            "department": a.student.department,
            "section": a.student.section,
        })
    return list(summary.values())


def allocation_rows(allocations):
    return [
        {
            "roll_number": a.student.roll_number,
            "full_name": a.student.full_name,
            "department": a.student.department,
            "section": a.student.section,
            "venue": a.venue.name,
            "block": a.venue.block,
            "seat_number": a.seat_number,
        }
        for a in sorted(allocations, key=seat_sort_key)
    ]


def _export_path(exam_id, suffix, export_dir=None):
    export_dir = Path(export_dir or config.EXPORT_DIR)
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir / f"allocation_exam_{exam_id}.{suffix}"


def export_excel(exam_id, allocations, export_dir=None):
    file_path = _export_path(exam_id, "xlsx", export_dir)
    pd.DataFrame(allocation_rows(allocations)).to_excel(file_path, index=False)
    return file_path


def export_pdf(exam, allocations, export_dir=None):
    file_path = _export_path(exam.id, "pdf", export_dir)

    c = canvas.Canvas(str(file_path), pagesize=A4)
    width, height = A4

    def header(venue_name):
        y = height - 50
        c.setFont("Helvetica-Bold", 14)
        c.drawString(50, y, f"Seating Arrangement - {exam.title} - {venue_name}")
        y -= 30

        c.setFont("Helvetica", 10)
        c.drawString(50, y, "Seat")
        c.drawString(110, y, "Roll No")
        c.drawString(210, y, "Name")
        c.drawString(380, y, "Dept")
        c.drawString(450, y, "Section")
        y -= 15

        c.line(50, y, 550, y)
        return y - 15

    names = {a.student.roll_number: a.student.full_name for a in allocations}

    for venue in group_by_venue(allocations):
        y = header(venue["venue_name"])

        for seat in venue["seats"]:
            if y < 60:
                c.showPage()
                y = header(venue["venue_name"])

            c.drawString(50, y, seat["seat_number"])
            c.drawString(110, y, seat["roll_number"])
            c.drawString(210, y, (names.get(seat["roll_number"]) or "")[:28])
            c.drawString(380, y, seat["department"])
            c.drawString(450, y, seat["section"])
            y -= 15

        c.showPage()

    c.save()
    return file_path
