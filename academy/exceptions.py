"""
Enrollment error taxonomy.

Domain errors describe the true current state and are never retried.
``StoreUnavailable`` wraps transient database failures and is the only
error a client should retry (with backoff).
"""


class EnrollmentError(Exception):
    """Base class for booking domain errors."""
    code = 'enrollment_error'
    default_message = 'Enrollment request rejected.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class NotFoundError(EnrollmentError):
    code = 'not_found'
    default_message = 'Resource not found.'


class CapacityExceededError(EnrollmentError):
    code = 'batch_full'
    default_message = 'Batch is full. No seats available.'


class DuplicateEnrollmentError(EnrollmentError):
    code = 'already_enrolled'
    default_message = 'You are already enrolled in this batch.'


class ForbiddenError(EnrollmentError):
    code = 'forbidden'
    default_message = 'You can only cancel your own enrollments.'


class InvalidStatusError(EnrollmentError):
    code = 'invalid_status'
    default_message = 'Invalid status. Must be PENDING or CONFIRMED.'


class CapacityError(EnrollmentError):
    """An administrative capacity edit would break the seat invariant."""
    code = 'invalid_capacity'
    default_message = 'Seat count cannot drop below the number of enrolled users.'


class CapacityUnderflowError(EnrollmentError):
    """A seat release found no seat to release; the counter has drifted."""
    code = 'seat_count_underflow'
    default_message = 'Seat counter would drop below zero.'


class StoreUnavailable(Exception):
    """The database could not complete the unit of work. Safe to retry."""
    code = 'store_unavailable'

    def __init__(self, message='Booking store temporarily unavailable. Please retry.'):
        super().__init__(message)
