from pybreaker import CircuitBreaker
from sqlalchemy.exc import IntegrityError

from .config import get_settings

_settings = get_settings()

# Guards writes to the reservation ledger. Unique-index violations are normal
# booking conflicts, so they do not count as failures. The call that trips
# the breaker re-raises its own storage error; only later calls get
# CircuitBreakerError.
ledger_breaker = CircuitBreaker(
    fail_max=_settings.breaker_fail_max,
    reset_timeout=_settings.breaker_reset_timeout,
    exclude=[IntegrityError],
    throw_new_error_on_trip=False,
    name="reservation_ledger_breaker",
)
