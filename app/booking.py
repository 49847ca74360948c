"""
Reservation workflows.

Every function here takes the database session and, where it matters, the
acting ``Identity`` explicitly. Multi-row writes happen in one transactional
scope: either every row commits or the session is rolled back and nothing
from the call is left behind.
"""
import csv
import io
import logging
import uuid
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from pybreaker import CircuitBreakerError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .circuit_breaker import ledger_breaker
from .errors import (
    NoEligibleSlots,
    NotFound,
    PermissionDenied,
    ServiceUnavailable,
    SlotConflict,
    StorageFailure,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

EXPORT_HEADER = ("日期", "時段", "教室", "預約者", "事由")


def _apply(db: Session, work: Callable[[Session], object]):
    result = work(db)
    db.flush()
    db.commit()
    return result


def _run_in_transaction(db: Session, work: Callable[[Session], object]):
    """
    Run ``work`` and commit, translating storage errors.

    A unique-index violation becomes ``SlotConflict``; anything else from
    the storage layer becomes ``StorageFailure`` (or ``ServiceUnavailable``
    while the breaker is open). The session is rolled back in every error
    case.
    """
    try:
        return ledger_breaker.call(_apply, db, work)
    except IntegrityError:
        db.rollback()
        raise SlotConflict()
    except CircuitBreakerError:
        db.rollback()
        logger.error("Reservation ledger breaker is open; rejecting write")
        raise ServiceUnavailable(
            "Reservation service temporarily unavailable. Please try again later."
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Storage failure while writing reservations")
        raise StorageFailure("Error writing reservations.")


def _require_admin(actor: schemas.Identity, action: str) -> None:
    if not actor.is_admin:
        raise PermissionDenied(f"Admin access required to {action}.")


def _get_classroom(db: Session, classroom_id: int) -> models.Classroom:
    classroom = db.query(models.Classroom).filter(models.Classroom.id == classroom_id).first()
    if not classroom:
        raise NotFound("Classroom not found")
    return classroom


# ----- Booking -----
def create_reservations(
    db: Session,
    actor: schemas.Identity,
    classroom_id: int,
    purpose: str,
    slots: Sequence[schemas.SlotIn],
) -> List[models.Reservation]:
    """
    Book every requested slot of one classroom for ``actor``, or none.

    Raises
    ------
    ValidationFailed
        Empty slot list or blank purpose.
    NotFound
        Unknown classroom.
    SlotConflict
        Any slot is already held for this classroom, or ``actor`` already
        holds another booking in that period.
    """
    if not slots or not purpose or not purpose.strip():
        raise ValidationFailed("Missing required fields.")
    _get_classroom(db, classroom_id)

    rows = [
        models.Reservation(
            user_id=actor.id,
            classroom_id=classroom_id,
            purpose=purpose,
            date=slot.date,
            time_slot=slot.time_slot,
        )
        for slot in slots
    ]

    def work(session: Session):
        session.add_all(rows)
        return rows

    try:
        _run_in_transaction(db, work)
    except SlotConflict:
        logger.warning(
            "Booking conflict for user %s in classroom %s (%d slots requested)",
            actor.username, classroom_id, len(rows),
        )
        raise

    for row in rows:
        db.refresh(row)
    logger.info(
        "User %s booked %d slot(s) in classroom %s", actor.username, len(rows), classroom_id
    )
    return rows


# ----- Batch lock -----
def expand_batch_slots(
    start_date: date,
    end_date: date,
    weekdays: Iterable[int],
    time_slots: Iterable[str],
) -> List[Tuple[date, str]]:
    """
    Cross product of qualifying days and time slots.

    ``weekdays`` uses 0 = Sunday ... 6 = Saturday. Days run from
    ``start_date`` to ``end_date`` inclusive; the result is ordered by date,
    then by the order the slots were given in.
    """
    selected_days = set(weekdays)
    labels = list(dict.fromkeys(time_slots))
    candidates = []
    current = start_date
    while current <= end_date:
        if current.isoweekday() % 7 in selected_days:
            for label in labels:
                candidates.append((current, label))
        current += timedelta(days=1)
    return candidates


def find_conflicts(
    db: Session,
    classroom_id: int,
    candidates: Sequence[Tuple[date, str]],
    holder_id: Optional[int] = None,
) -> List[dict]:
    """
    Existing reservations that collide with ``candidates``.

    A row collides when it occupies a candidate (date, slot) of
    ``classroom_id``, or, when ``holder_id`` is given, when that user
    already holds the same (date, slot) in any classroom.
    """
    dates = {d for d, _ in candidates}
    labels = {label for _, label in candidates}
    wanted = set(candidates)
    owner_filter = models.Reservation.classroom_id == classroom_id
    if holder_id is not None:
        owner_filter = or_(owner_filter, models.Reservation.user_id == holder_id)
    existing = (
        db.query(models.Reservation)
        .options(joinedload(models.Reservation.user))
        .filter(
            owner_filter,
            models.Reservation.date.in_(dates),
            models.Reservation.time_slot.in_(labels),
        )
        .all()
    )
    conflicts = [
        {
            "date": r.date,
            "time_slot": r.time_slot,
            "classroom_id": r.classroom_id,
            "user_id": r.user_id,
            "user_nickname": r.user_nickname,
        }
        for r in existing
        if (r.date, r.time_slot) in wanted
    ]
    conflicts.sort(
        key=lambda c: (
            c["date"],
            models.TIME_SLOT_ORDER.get(c["time_slot"], 0),
            c["classroom_id"] != classroom_id,
            c["classroom_id"],
        )
    )
    return conflicts


def create_batch(
    db: Session,
    actor: schemas.Identity,
    classroom_id: int,
    purpose: str,
    start_date: date,
    end_date: date,
    time_slots: Sequence[str],
    weekdays: Sequence[int],
) -> Tuple[str, List[models.Reservation]]:
    """
    Lock every selected period of a date range for ``actor`` (an admin).

    All rows share a freshly generated batch tag. The whole batch is checked
    against the ledger first, including slots ``actor`` already holds in
    other classrooms, and, if anything collides, rejected with the full
    list of collisions. A booking that lands between the check and the
    insert still fails the insert through the unique index and is reported
    as a plain conflict.
    """
    _require_admin(actor, "lock time slots")
    if not purpose or not purpose.strip() or not time_slots or not weekdays:
        raise ValidationFailed("Missing required fields.")
    if end_date < start_date:
        raise ValidationFailed("End date cannot be earlier than start date.")
    _get_classroom(db, classroom_id)

    candidates = expand_batch_slots(start_date, end_date, weekdays, time_slots)
    if not candidates:
        raise NoEligibleSlots()

    conflicts = find_conflicts(db, classroom_id, candidates, holder_id=actor.id)
    if conflicts:
        logger.warning(
            "Batch lock for classroom %s rejected: %d conflicting slot(s)",
            classroom_id, len(conflicts),
        )
        raise SlotConflict(
            "Some of the selected time slots are already booked.",
            conflicts=conflicts,
        )

    batch_id = uuid.uuid4().hex
    rows = [
        models.Reservation(
            user_id=actor.id,
            classroom_id=classroom_id,
            purpose=purpose,
            date=slot_date,
            time_slot=label,
            batch_id=batch_id,
        )
        for slot_date, label in candidates
    ]

    def work(session: Session):
        session.add_all(rows)
        return rows

    _run_in_transaction(db, work)
    for row in rows:
        db.refresh(row)
    logger.info(
        "Admin %s created batch %s with %d reservation(s) in classroom %s",
        actor.username, batch_id, len(rows), classroom_id,
    )
    return batch_id, rows


def get_batch(db: Session, actor: schemas.Identity, batch_id: str) -> List[models.Reservation]:
    _require_admin(actor, "view batches")
    rows = (
        db.query(models.Reservation)
        .filter(models.Reservation.batch_id == batch_id)
        .order_by(models.Reservation.date, models.Reservation.id)
        .all()
    )
    if not rows:
        raise NotFound("Batch not found")
    return rows


def delete_batch(db: Session, actor: schemas.Identity, batch_id: str) -> int:
    """Delete every reservation tagged ``batch_id``; returns how many went."""
    _require_admin(actor, "delete batches")

    def work(session: Session):
        return (
            session.query(models.Reservation)
            .filter(models.Reservation.batch_id == batch_id)
            .delete(synchronize_session=False)
        )

    deleted = _run_in_transaction(db, work)
    if not deleted:
        raise NotFound("Batch not found")
    logger.info("Admin %s deleted batch %s (%d reservations)", actor.username, batch_id, deleted)
    return deleted


# ----- Single removal -----
def remove_reservation(db: Session, actor: schemas.Identity, reservation_id: int) -> None:
    reservation = (
        db.query(models.Reservation).filter(models.Reservation.id == reservation_id).first()
    )
    if not reservation:
        raise NotFound("Reservation not found.")

    # admin or the holder
    if not actor.is_admin and reservation.user_id != actor.id:
        raise PermissionDenied("You do not have permission to delete this reservation.")

    _run_in_transaction(db, lambda session: session.delete(reservation))
    logger.info("User %s removed reservation %s", actor.username, reservation_id)


# ----- Read views -----
def list_reservations(db: Session, classroom_id: Optional[int] = None) -> List[models.Reservation]:
    query = db.query(models.Reservation).options(joinedload(models.Reservation.user))
    if classroom_id is not None:
        query = query.filter(models.Reservation.classroom_id == classroom_id)
    return query.order_by(models.Reservation.date, models.Reservation.id).all()


def list_user_reservations(db: Session, actor: schemas.Identity) -> List[models.Reservation]:
    return (
        db.query(models.Reservation)
        .options(joinedload(models.Reservation.classroom))
        .filter(models.Reservation.user_id == actor.id)
        .order_by(models.Reservation.date.desc(), models.Reservation.id)
        .all()
    )


def export_rows(
    db: Session,
    start_date: date,
    end_date: date,
    classroom_id: Optional[int] = None,
) -> List[Tuple[str, str, str, str, str]]:
    """
    Reservations in ``[start_date, end_date]`` as (date, time slot,
    classroom, holder, purpose), sorted by date then period.
    """
    if end_date < start_date:
        raise ValidationFailed("End date cannot be earlier than start date.")

    query = (
        db.query(models.Reservation)
        .options(
            joinedload(models.Reservation.user),
            joinedload(models.Reservation.classroom),
        )
        .filter(
            models.Reservation.date >= start_date,
            models.Reservation.date <= end_date,
        )
    )
    if classroom_id is not None:
        query = query.filter(models.Reservation.classroom_id == classroom_id)

    reservations = sorted(
        query.all(),
        key=lambda r: (r.date, models.TIME_SLOT_ORDER.get(r.time_slot, len(models.TIME_SLOTS))),
    )
    if not reservations:
        raise NotFound("No reservations found in the selected date range.")
    return [
        (
            r.date.isoformat(),
            r.time_slot,
            r.classroom_name,
            r.user_nickname,
            r.purpose,
        )
        for r in reservations
    ]


def render_csv(rows: Iterable[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_HEADER)
    writer.writerows(rows)
    return buffer.getvalue()
