import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from .. import schemas, models
from ..deps import get_db, get_password_hash, get_user_by_username, require_roles

logger = logging.getLogger(__name__)

# Every user-management endpoint is admin-only
router = APIRouter(prefix="/users", tags=["users"])


def _get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/", response_model=List[schemas.UserOut])
def list_users(
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """
    List all registered users. *(Admin-only)*

    Password hashes are never part of the response.
    """
    return db.query(models.User).order_by(models.User.id).all()


@router.get("/pending", response_model=List[schemas.UserOut])
def list_pending_users(
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """List accounts waiting for approval. *(Admin-only)*"""
    return (
        db.query(models.User)
        .filter(models.User.status == models.STATUS_PENDING)
        .order_by(models.User.id)
        .all()
    )


@router.put("/{user_id}/approve", response_model=schemas.UserOut)
def approve_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Approve a pending account so it can log in. *(Admin-only)*

    Raises
    ------
    HTTPException
        - 404 if the user does not exist.
    """
    user = _get_user_or_404(db, user_id)
    user.status = models.STATUS_ACTIVE
    db.commit()
    db.refresh(user)
    logger.info("Admin %s approved user %s", admin.username, user.username)
    return user


@router.post("/", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Create an account directly. *(Admin-only)*

    Accounts created by an administrator are active immediately.

    Raises
    ------
    HTTPException
        - 409 if the username is already taken.
    """
    if get_user_by_username(db, user_in.username):
        raise HTTPException(status_code=409, detail="Username already exists.")

    user = models.User(
        username=user_in.username,
        password_hash=get_password_hash(user_in.password),
        role=user_in.role,
        status=models.STATUS_ACTIVE,
        nickname=user_in.nickname,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username already exists.")
    db.refresh(user)
    logger.info("Admin %s created user %s", admin.username, user.username)
    return user


@router.put("/{user_id}", response_model=schemas.UserOut)
def update_user(
    user_id: int,
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Change a user's role and/or nickname. *(Admin-only)*

    An administrator cannot change their own role.

    Raises
    ------
    HTTPException
        - 403 if an admin tries to change their own role.
        - 404 if the target user does not exist.
    """
    user = _get_user_or_404(db, user_id)
    data = user_update.dict(exclude_unset=True, exclude_none=True)

    if "role" in data and user.id == admin.id:
        raise HTTPException(status_code=403, detail="Cannot change your own role.")

    for field, value in data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user


@router.put("/{user_id}/password")
def reset_user_password(
    user_id: int,
    payload: schemas.UserPasswordReset,
    db: Session = Depends(get_db),
    _: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Reset a user's password. *(Admin-only)*

    Raises
    ------
    HTTPException
        - 404 if the user does not exist.
    """
    user = _get_user_or_404(db, user_id)
    user.password_hash = get_password_hash(payload.password)
    db.commit()
    return {"detail": "Password reset successfully"}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: schemas.Identity = Depends(require_roles("admin")),
):
    """
    Delete a user from the system. *(Admin-only)*

    All of the user's reservations are deleted with the account. Also used
    to reject pending registrations.

    Raises
    ------
    HTTPException
        - 403 if an admin tries to delete their own account.
        - 404 if the user does not exist.
    """
    if user_id == admin.id:
        raise HTTPException(status_code=403, detail="Cannot delete yourself.")

    user = _get_user_or_404(db, user_id)
    username = user.username
    db.delete(user)
    db.commit()
    logger.info("Admin %s deleted user %s", admin.username, username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
