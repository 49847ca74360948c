from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import ROLE_ADMIN, ROLES, TIME_SLOTS


def _check_time_slot(value: str) -> str:
    if value not in TIME_SLOTS:
        raise ValueError(f"Unknown time slot: {value}")
    return value


# ----- Identity -----
class Identity(BaseModel):
    """Authenticated caller, threaded explicitly into every workflow call."""

    id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    class Config:
        from_attributes = True


# ----- Users -----
class UserOut(BaseModel):
    id: int
    username: str
    role: str
    status: str
    nickname: str

    class Config:
        from_attributes = True


class UserRegister(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    nickname: Optional[str] = None


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    nickname: str = Field(min_length=1)
    role: str = "user"

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        if v not in ROLES:
            raise ValueError("Invalid role specified.")
        return v


class UserUpdate(BaseModel):
    role: Optional[str] = None
    nickname: Optional[str] = Field(default=None, min_length=1)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        if v is not None and v not in ROLES:
            raise ValueError("Invalid role specified.")
        return v


class UserPasswordReset(BaseModel):
    password: str = Field(min_length=1)


# ----- Auth -----
class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class TokenData(BaseModel):
    username: Optional[str] = None
    role: Optional[str] = None


# ----- Classrooms -----
class ClassroomBase(BaseModel):
    name: str = Field(min_length=1)
    capacity: int = Field(ge=0)
    color: str = Field(min_length=1)


class ClassroomCreate(ClassroomBase):
    pass


class ClassroomOut(ClassroomBase):
    id: int

    class Config:
        from_attributes = True


# ----- Reservations -----
class SlotIn(BaseModel):
    date: date
    time_slot: str

    @field_validator("time_slot")
    @classmethod
    def check_time_slot(cls, v):
        return _check_time_slot(v)


class ReservationCreate(BaseModel):
    classroom_id: int
    purpose: str
    slots: List[SlotIn]


class ReservationOut(BaseModel):
    id: int
    classroom_id: int
    user_id: int
    purpose: str
    date: date
    time_slot: str
    batch_id: Optional[str] = None

    class Config:
        from_attributes = True


class ReservationListItem(ReservationOut):
    user_nickname: Optional[str] = None


class MyReservation(ReservationOut):
    classroom_name: Optional[str] = None


class ReservationCreated(BaseModel):
    detail: str
    reservations: List[ReservationOut]


class BatchCreate(BaseModel):
    classroom_id: int
    purpose: str
    start_date: date
    end_date: date
    time_slots: List[str]
    # 0 = Sunday ... 6 = Saturday
    weekdays: List[int]

    @field_validator("time_slots")
    @classmethod
    def check_time_slots(cls, v):
        return [_check_time_slot(slot) for slot in v]

    @field_validator("weekdays")
    @classmethod
    def check_weekdays(cls, v):
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return v

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be earlier than start_date")
        return self


class BatchCreated(BaseModel):
    detail: str
    batch_id: str
    count: int
    reservations: List[ReservationOut]


class BatchDeleted(BaseModel):
    detail: str
    deleted: int
