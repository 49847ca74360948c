import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import schemas, models
from ..config import Settings, get_settings
from ..deps import (
    get_db,
    get_password_hash,
    authenticate_user,
    create_access_token,
    get_current_user,
    get_user_by_username,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register_user(user_in: schemas.UserRegister, db: Session = Depends(get_db)):
    """
    Register a new account.

    New accounts always get the ``user`` role and start out ``pending``:
    they cannot log in until an administrator approves them.

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
        role=models.ROLE_USER,
        status=models.STATUS_PENDING,
        nickname=user_in.nickname or models.DEFAULT_NICKNAME,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username already exists.")
    db.refresh(user)
    logger.info("Registered user %s (pending approval)", user.username)
    return user


@router.post("/login", response_model=schemas.Token)
def login_for_access_token(
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Authenticate a user and return a JWT access token.

    Raises
    ------
    HTTPException
        - 401 if credentials are invalid.
        - 403 if the account has not been approved yet.
    """
    user = authenticate_user(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials.",
        )
    if user.status != models.STATUS_ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is pending approval.",
        )
    token = create_access_token(
        {"sub": user.username, "uid": user.id, "role": user.role},
        settings,
    )
    return {"access_token": token, "token_type": "bearer", "user": user}


@router.get("/me", response_model=schemas.UserOut)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """Get the currently authenticated user."""
    return current_user
