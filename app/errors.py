"""
Error taxonomy for the reservation workflows.

Workflows raise these; ``error_handlers`` turns them into JSON responses
carrying the kind, a human-readable detail and, for conflicts, the
colliding slots.
"""
from typing import Any, Dict, List, Optional


class ReservationSystemError(Exception):
    """Base class for every error a workflow reports to its caller."""

    kind = "error"
    status_code = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ValidationFailed(ReservationSystemError):
    """Malformed or missing input; storage was not touched."""

    kind = "validation_error"
    status_code = 400


class NoEligibleSlots(ReservationSystemError):
    """A batch request whose date range and weekday filter select nothing."""

    kind = "no_eligible_slots"
    status_code = 400

    def __init__(self, detail: str = "No eligible slots in the selected date range and weekdays."):
        super().__init__(detail)


class SlotConflict(ReservationSystemError):
    """
    A requested slot is already taken.

    ``conflicts`` lists every colliding slot when it is known (batch
    precheck); it is empty when the storage engine's unique index caught the
    collision on insert.
    """

    kind = "conflict"
    status_code = 409

    def __init__(
        self,
        detail: str = "One or more selected time slots are already booked.",
        conflicts: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(detail)
        self.conflicts = conflicts or []


class PermissionDenied(ReservationSystemError):
    kind = "permission_denied"
    status_code = 403


class NotFound(ReservationSystemError):
    kind = "not_found"
    status_code = 404


class StorageFailure(ReservationSystemError):
    """Unexpected storage fault; the transaction was rolled back."""

    kind = "storage_failure"
    status_code = 500


class ServiceUnavailable(ReservationSystemError):
    """The ledger circuit breaker is open."""

    kind = "service_unavailable"
    status_code = 503
