from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from typing import List

from .. import schemas, models
from ..deps import get_db, require_roles

router = APIRouter(prefix="/classrooms", tags=["classrooms"])


@router.get("/", response_model=List[schemas.ClassroomOut])
def list_classrooms(db: Session = Depends(get_db)):
    """List every classroom, ordered by id. Open to everyone."""
    return db.query(models.Classroom).order_by(models.Classroom.id).all()


@router.post("/", response_model=schemas.ClassroomOut, status_code=status.HTTP_201_CREATED)
def create_classroom(
    classroom_in: schemas.ClassroomCreate,
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Create a new classroom. *(Admin-only)*
    """
    classroom = models.Classroom(**classroom_in.dict())
    db.add(classroom)
    db.commit()
    db.refresh(classroom)
    return classroom


@router.put("/{classroom_id}", response_model=schemas.ClassroomOut)
def update_classroom(
    classroom_id: int,
    classroom_in: schemas.ClassroomCreate,
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Replace a classroom's name, capacity and color. *(Admin-only)*

    Raises a 404 error if the classroom is not found.
    """
    classroom = db.query(models.Classroom).filter(models.Classroom.id == classroom_id).first()
    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")
    for field, value in classroom_in.dict().items():
        setattr(classroom, field, value)
    db.commit()
    db.refresh(classroom)
    return classroom


@router.delete("/{classroom_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_classroom(
    classroom_id: int,
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Delete a classroom. *(Admin-only)*

    Every reservation of the classroom is deleted with it.
    Raises a 404 error if the classroom does not exist.
    """
    classroom = db.query(models.Classroom).filter(models.Classroom.id == classroom_id).first()
    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")
    db.delete(classroom)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
