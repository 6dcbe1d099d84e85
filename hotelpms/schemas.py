import re
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional, List

from pydantic import BaseModel, Field, PlainSerializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import ReservationStatus, RoomStatus, TaxApplicationType, UserRole

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(value):
    if isinstance(value, str):
        return _TAG_RE.sub("", value).strip()
    return value


def _format_money(value) -> str:
    return f"{Decimal(value):.2f}"


# Amounts go over the wire as fixed two-decimal strings
Money = Annotated[Decimal, PlainSerializer(_format_money, return_type=str)]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class TextCleaningModel(CamelModel):
    @field_validator("*", mode="before")
    @classmethod
    def _clean_text(cls, v):
        return strip_tags(v)


# ==== Auth & Users ====

class LoginIn(CamelModel):
    email: str
    password: str

class UserOut(CamelModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    branch_id: Optional[int] = None
    permissions: dict = {}
    is_active: bool

class UserCreateIn(CamelModel):
    email: str
    password: str = Field(min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.FRONT_DESK
    branch_id: Optional[int] = None
    permissions: dict = {}

class UserUpdateIn(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None
    branch_id: Optional[int] = None
    permissions: Optional[dict] = None
    is_active: Optional[bool] = None


# ==== Branches ====

class BranchIn(TextCleaningModel):
    name: str = Field(min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True

class BranchUpdateIn(TextCleaningModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None

class BranchOut(CamelModel):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class BranchDeleteOut(BaseModel):
    action: str
    message: str


# ==== Room types & Rooms ====

class RoomTypeIn(TextCleaningModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    base_price: Optional[Decimal] = None
    max_occupancy: int = Field(default=2, ge=1)
    branch_id: Optional[int] = None
    is_active: bool = True

class RoomTypeUpdateIn(TextCleaningModel):
    name: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = None
    max_occupancy: Optional[int] = Field(default=None, ge=1)
    branch_id: Optional[int] = None
    is_active: Optional[bool] = None

class RoomTypeOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    base_price: Optional[Money] = None
    max_occupancy: int
    branch_id: Optional[int] = None
    is_active: bool

class RoomIn(TextCleaningModel):
    branch_id: int
    room_type_id: int
    number: str = Field(min_length=1)
    floor: Optional[int] = None
    status: RoomStatus = RoomStatus.AVAILABLE
    is_active: bool = True

class RoomUpdateIn(TextCleaningModel):
    room_type_id: Optional[int] = None
    number: Optional[str] = None
    floor: Optional[int] = None
    status: Optional[RoomStatus] = None
    is_active: Optional[bool] = None

class RoomOut(CamelModel):
    id: int
    branch_id: int
    room_type_id: int
    number: str
    floor: Optional[int] = None
    status: str
    is_active: bool
    room_type: Optional[RoomTypeOut] = None


# ==== Guests ====

class GuestIn(TextCleaningModel):
    first_name: str = Field(min_length=1)
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    nationality: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None

class GuestUpdateIn(TextCleaningModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    nationality: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    is_active: Optional[bool] = None

class GuestOut(CamelModel):
    id: int
    branch_id: Optional[int] = None
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    nationality: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    reservation_count: int
    is_active: bool
    created_at: Optional[datetime] = None


# ==== Taxes ====

class TaxIn(TextCleaningModel):
    tax_name: str = Field(min_length=1)
    rate: Decimal = Field(ge=0, le=100)
    application_type: TaxApplicationType = TaxApplicationType.RESERVATION
    is_active: bool = True

class TaxUpdateIn(TextCleaningModel):
    tax_name: Optional[str] = None
    rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    application_type: Optional[TaxApplicationType] = None
    is_active: Optional[bool] = None

class TaxOut(CamelModel):
    id: int
    tax_name: str
    rate: Money
    application_type: str
    is_active: bool


# ==== Reservations ====

class ReservationRoomIn(TextCleaningModel):
    # Present only when editing an existing reservation-room row
    id: Optional[int] = None
    room_id: int
    check_in_date: date
    check_out_date: date
    adults: int = Field(default=1, ge=0)
    children: int = Field(default=0, ge=0)
    rate_per_night: Decimal = Field(ge=0)
    # Omitted line totals are computed from the rate and the billable nights
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    special_requests: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.check_out_date < self.check_in_date:
            raise ValueError("checkOutDate must be on or after checkInDate")
        return self

class ReservationFieldsIn(TextCleaningModel):
    branch_id: Optional[int] = None
    status: ReservationStatus = ReservationStatus.CONFIRMED
    notes: Optional[str] = None
    paid_amount: Decimal = Field(default=Decimal("0"), ge=0)

class ReservationFieldsUpdateIn(TextCleaningModel):
    status: Optional[ReservationStatus] = None
    notes: Optional[str] = None
    paid_amount: Optional[Decimal] = Field(default=None, ge=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    tax_amount: Optional[Decimal] = Field(default=None, ge=0)

class ReservationCreateIn(CamelModel):
    guest: GuestIn
    reservation: ReservationFieldsIn
    rooms: List[ReservationRoomIn] = Field(min_length=1)

class ReservationPatchIn(ReservationFieldsUpdateIn):
    """Either the comprehensive shape (guest/reservation/rooms) or a flat partial reservation."""
    guest: Optional[GuestUpdateIn] = None
    reservation: Optional[ReservationFieldsUpdateIn] = None
    rooms: Optional[List[ReservationRoomIn]] = None

    @property
    def is_comprehensive(self) -> bool:
        return bool({"guest", "reservation", "rooms"} & self.model_fields_set)

    def flat_fields(self) -> ReservationFieldsUpdateIn:
        names = set(ReservationFieldsUpdateIn.model_fields) & self.model_fields_set
        return ReservationFieldsUpdateIn.model_validate({n: getattr(self, n) for n in names})

class AppliedTaxOut(CamelModel):
    tax_id: int
    name: str
    rate: str
    amount: str

class ReservationRoomOut(CamelModel):
    id: int
    reservation_id: str
    room_id: int
    check_in_date: date
    check_out_date: date
    adults: int
    children: int
    rate_per_night: Money
    total_amount: Money
    special_requests: Optional[str] = None
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None
    room: Optional[RoomOut] = None

class ReservationOut(CamelModel):
    id: str
    confirmation_number: str
    branch_id: int
    guest_id: int
    status: str
    total_amount: Money
    tax_amount: Money
    paid_amount: Money
    applied_taxes: List[AppliedTaxOut] = []
    notes: Optional[str] = None
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    guest: Optional[GuestOut] = None
    reservation_rooms: List[ReservationRoomOut] = []
