"""Operation-level failures raised by the seating engine.

Row-level problems found while reading a manual-allocation CSV are not
exceptions; they are collected as ``RowError`` values (see ``csv_import``).
Everything here aborts the whole operation before anything is written,
or, for ``AllocationConflict``, after the store has rolled back.
"""


class SeatingError(Exception):
    code = "SeatingError"
    status_code = 400

    def __init__(self, message=None):
        self.message = message or self.code
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.code, "message": self.message}


# preconditions

class NoStudentsFound(SeatingError):
    code = "NoStudentsFound"


class NoVenuesSelected(SeatingError):
    code = "NoVenuesSelected"


class AllVenuesUnavailable(SeatingError):
    code = "AllVenuesUnavailable"


class VenueUnavailable(SeatingError):
    code = "VenueUnavailable"


class EmptyValidBatch(SeatingError):
    code = "EmptyValidBatch"

    def __init__(self, message=None, log=None):
        super().__init__(message)
        self.log = log or []

    def to_dict(self):
        data = super().to_dict()
        data["log"] = self.log
        return data


class InvalidCsv(SeatingError):
    code = "InvalidCsv"


# not found

class NotFoundError(SeatingError):
    status_code = 404


class ExamNotFound(NotFoundError):
    code = "ExamNotFound"


class VenueNotFound(NotFoundError):
    code = "VenueNotFound"


class StudentNotFound(NotFoundError):
    code = "StudentNotFound"


# consistency

class ConsistencyError(SeatingError):
    status_code = 409


class AllocationConflict(ConsistencyError):
    code = "AllocationConflict"


class DuplicateVenueName(ConsistencyError):
    code = "DuplicateVenueName"


class DuplicateRollNumber(ConsistencyError):
    code = "DuplicateRollNumber"


class VenueInUse(ConsistencyError):
    code = "VenueInUse"


class NoAllocations(NotFoundError):
    code = "NoAllocations"
