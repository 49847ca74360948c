import logging

from sqlalchemy.orm import Session

from . import models
from .config import Settings
from .database import Base
from .deps import get_password_hash, get_user_by_username

logger = logging.getLogger(__name__)


def init_db(engine) -> None:
    """
    Create all tables based on SQLAlchemy models.
    """
    Base.metadata.create_all(bind=engine)


def bootstrap_admin(db: Session, settings: Settings) -> models.User | None:
    """
    Make sure the configured administrator account exists.

    Does nothing (with a warning) when the credentials are not configured,
    and leaves an existing account with that username untouched. Returns the
    newly created user, or None.
    """
    username = settings.admin_username
    password = settings.admin_password
    if not username or not password:
        logger.warning("ADMIN_USERNAME or ADMIN_PASSWORD not set; skipping admin bootstrap")
        return None

    if get_user_by_username(db, username):
        logger.info("Admin account '%s' already exists", username)
        return None

    logger.info("Admin account '%s' not found; creating it", username)
    admin = models.User(
        username=username,
        password_hash=get_password_hash(password),
        role=models.ROLE_ADMIN,
        status=models.STATUS_ACTIVE,
        nickname=settings.admin_nickname,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin account '%s' created", username)
    return admin
