from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import booking, schemas
from ..deps import get_db, get_current_identity, require_roles
from ..errors import ValidationFailed

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.get("/", response_model=List[schemas.ReservationListItem])
def list_reservations(
    classroom_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    List reservations, optionally for a single classroom.

    Open to everyone so the calendar can be shown before login. Each entry
    carries the holder's nickname.
    """
    return booking.list_reservations(db, classroom_id)


@router.get("/my", response_model=List[schemas.MyReservation])
def list_my_reservations(
    db: Session = Depends(get_db),
    identity: schemas.Identity = Depends(get_current_identity),
):
    """List the current user's reservations, most recent date first."""
    return booking.list_user_reservations(db, identity)


@router.post("/", response_model=schemas.ReservationCreated, status_code=status.HTTP_201_CREATED)
def create_reservation(
    reservation_in: schemas.ReservationCreate,
    db: Session = Depends(get_db),
    identity: schemas.Identity = Depends(get_current_identity),
):
    """
    Book one or more slots of a classroom for the current user.

    Either every slot is booked or none is: if any slot is already taken
    (by anyone for this classroom, or by the current user in another
    classroom) the request fails with 409 and nothing is saved.
    """
    rows = booking.create_reservations(
        db,
        identity,
        reservation_in.classroom_id,
        reservation_in.purpose,
        reservation_in.slots,
    )
    return {"detail": "Reservations created successfully.", "reservations": rows}


@router.post("/batch", response_model=schemas.BatchCreated, status_code=status.HTTP_201_CREATED)
def create_batch_reservation(
    batch_in: schemas.BatchCreate,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Lock a set of periods over a date range. *(Admin-only)*

    Books every selected time slot on every day between ``start_date`` and
    ``end_date`` whose weekday is listed in ``weekdays`` (0 = Sunday).
    If any of those slots is already booked nothing is created and the 409
    response lists every conflicting slot with its holder.
    """
    batch_id, rows = booking.create_batch(
        db,
        admin,
        batch_in.classroom_id,
        batch_in.purpose,
        batch_in.start_date,
        batch_in.end_date,
        batch_in.time_slots,
        batch_in.weekdays,
    )
    return {
        "detail": "Batch reservation created successfully.",
        "batch_id": batch_id,
        "count": len(rows),
        "reservations": rows,
    }


@router.get("/batch/{batch_id}", response_model=List[schemas.ReservationOut])
def get_batch_reservations(
    batch_id: str,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """List the reservations created by one batch lock. *(Admin-only)*"""
    return booking.get_batch(db, admin, batch_id)


@router.delete("/batch/{batch_id}", response_model=schemas.BatchDeleted)
def delete_batch_reservation(
    batch_id: str,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Delete every reservation created by one batch lock. *(Admin-only)*

    Returns 404 if no reservation carries the tag.
    """
    deleted = booking.delete_batch(db, admin, batch_id)
    return {"detail": "Batch reservation deleted.", "deleted": deleted}


@router.get("/export")
def export_reservations(
    start_date: date,
    end_date: date,
    classroom_id: Optional[str] = None,
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Download reservations in a date range as CSV. *(Admin-only)*

    ``classroom_id`` may be omitted or ``all`` to export every classroom.
    """
    room_filter = None
    if classroom_id and classroom_id != "all":
        try:
            room_filter = int(classroom_id)
        except ValueError:
            raise ValidationFailed("classroom_id must be an integer or 'all'.")

    rows = booking.export_rows(db, start_date, end_date, room_filter)
    # BOM so spreadsheet software picks up UTF-8
    content = "\ufeff" + booking.render_csv(rows)
    filename = f"reservations_{start_date.isoformat()}_{end_date.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    identity: schemas.Identity = Depends(get_current_identity),
):
    """
    Cancel a reservation.

    - Users can cancel their own reservations.
    - Admins can cancel any reservation.
    """
    booking.remove_reservation(db, identity, reservation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
