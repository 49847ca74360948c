from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"

DEFAULT_NICKNAME = "使用者"

# Bookable periods of a school day, in calendar order
TIME_SLOTS = (
    "第一節",
    "第二節",
    "第三節",
    "第四節",
    "午休",
    "第五節",
    "第六節",
    "第七節",
    "第八節",
    "晚上",
)
TIME_SLOT_ORDER = {label: index for index, label in enumerate(TIME_SLOTS)}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)  # user, admin
    status = Column(String, nullable=False, default=STATUS_PENDING)  # pending, active
    nickname = Column(String, nullable=False, default=DEFAULT_NICKNAME)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    reservations = relationship(
        "Reservation",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class Classroom(Base):
    __tablename__ = "classrooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False)
    color = Column(String, nullable=False)

    reservations = relationship(
        "Reservation",
        back_populates="classroom",
        cascade="all, delete-orphan",
    )


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # a person cannot hold two bookings in the same period
        UniqueConstraint("user_id", "date", "time_slot", name="uq_reservation_user_slot"),
        # a room cannot be double-booked
        UniqueConstraint("classroom_id", "date", "time_slot", name="uq_reservation_classroom_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False)
    purpose = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    time_slot = Column(String, nullable=False)
    batch_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="reservations")
    classroom = relationship("Classroom", back_populates="reservations")

    @property
    def user_nickname(self) -> str | None:
        return self.user.nickname if self.user else None

    @property
    def classroom_name(self) -> str | None:
        return self.classroom.name if self.classroom else None
