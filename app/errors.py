"""
Domain error taxonomy for ride inventory and booking operations.

Every error carries a stable machine-readable ``kind`` and the HTTP status the
API layer maps it to.  None of them should ever surface as a generic 500.
"""


class DomainError(Exception):
    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class ValidationError(DomainError):
    kind = "validation_error"
    status_code = 422


class OutOfRange(ValidationError):
    kind = "out_of_range"


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404


class PassengerNotFound(NotFound):
    kind = "passenger_not_found"


class Unauthorized(DomainError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(DomainError):
    kind = "forbidden"
    status_code = 403


class InvalidState(DomainError):
    kind = "invalid_state"
    status_code = 409


class CapacityExceeded(DomainError):
    kind = "capacity_exceeded"
    status_code = 409


class DuplicatePassenger(DomainError):
    kind = "duplicate_passenger"
    status_code = 409


class CancellationWindowClosed(DomainError):
    kind = "cancellation_window_closed"
    status_code = 409


class AlreadyRated(DomainError):
    kind = "already_rated"
    status_code = 409


class NotEligible(DomainError):
    kind = "not_eligible"
    status_code = 409


class ConcurrencyConflict(DomainError):
    kind = "concurrency_conflict"
    status_code = 409
