from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


class BookingBase(BaseModel):
    room_id: int
    check_in: date
    check_out: date


class BookingCreate(BookingBase):
    guests: int = Field(1, ge=1)
    guest_name: Optional[str] = Field(None, max_length=100)
    guest_email: Optional[str] = Field(None, max_length=100)
    guest_phone: Optional[str] = Field(None, max_length=20)


class BookingUpdate(BaseModel):
    check_in: date
    check_out: date


class BookingResponse(BookingBase):
    id: str
    user_id: int
    guests: int
    total_price: Decimal
    status: str
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DateRangeResponse(BaseModel):
    check_in: date
    check_out: date
    nights: int

    @classmethod
    def from_range(cls, date_range):
        return cls(check_in=date_range.start, check_out=date_range.end, nights=date_range.nights)


class AvailabilityResponse(BaseModel):
    room_id: int
    check_in: date
    check_out: date
    available: bool
    code: str
    message: str = ""
    conflict: Optional[DateRangeResponse] = None

