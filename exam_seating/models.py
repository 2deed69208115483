"""Plain in-memory objects passed between the engine, the CSV parser and the store."""


class SeatPlan:
    """One student's seat, before it is written to the store."""

    def __init__(self, student, venue, seat_number, overflow=False):
        self.student = student
        self.venue = venue
        self.seat_number = seat_number
        self.overflow = overflow

    def __repr__(self):
        return f"SeatPlan({self.student.roll_number!r} -> {self.venue.name!r}:{self.seat_number!r})"


class Placement(SeatPlan):
    """A validated manual-allocation CSV row."""

    def __init__(self, line, student, venue, seat_number):
        super().__init__(student, venue, seat_number)
        self.line = line

    def log_entry(self):
        return {
            "line": self.line,
            "status": "ok",
            "roll_number": self.student.roll_number,
            "message": f"{self.student.roll_number} -> {self.venue.name} seat {self.seat_number}",
        }


class RowError:
    def __init__(self, line, code, message, roll_number=""):
        self.line = line
        self.code = code
        self.message = message
        self.roll_number = roll_number

    def log_entry(self):
        return {
            "line": self.line,
            "status": "error",
            "roll_number": self.roll_number,
            "code": self.code,
            "message": self.message,
        }

    def __str__(self):
        return f"Line {self.line}: {self.message}"


class ParseResult:
    def __init__(self):
        self.placements = []
        self.errors = []

    @property
    def log(self):
        entries = [p.log_entry() for p in self.placements] + [e.log_entry() for e in self.errors]
        return sorted(entries, key=lambda entry: entry["line"])


class AllocationOutcome:
    def __init__(self, exam_id, allocations):
        self.exam_id = exam_id
        self.allocations = allocations

    @property
    def overflow(self):
        return sum(1 for a in self.allocations if a.is_overflow)

    @property
    def placed(self):
        return len(self.allocations) - self.overflow
