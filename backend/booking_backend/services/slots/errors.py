# backend/booking_backend/services/slots/errors.py
"""
Error taxonomy for the availability engine.

InvalidInput     — malformed caller arguments (never retried)
ValidationError  — field-level rule violation when blocking a period
DataUnavailable  — one member's inputs could not be loaded during aggregation
SlotUnavailable  — write-time re-validation found a conflict
NotFound         — referenced record does not exist
"""


class SchedulingError(Exception):
    """Base class for availability engine errors."""


class InvalidInput(SchedulingError, ValueError):
    pass


class ValidationError(SchedulingError, ValueError):
    """Rule violation on a single field; `field` names the offender."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class DataUnavailable(SchedulingError):
    def __init__(self, member_id, message: str = "member data could not be loaded"):
        super().__init__(f"member {member_id}: {message}")
        self.member_id = member_id


class SlotUnavailable(SchedulingError):
    pass


class NotFound(SchedulingError):
    pass
