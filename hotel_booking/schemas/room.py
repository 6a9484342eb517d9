from pydantic import BaseModel, ConfigDict, Field
from decimal import Decimal
from typing import Optional

class RoomBase(BaseModel):
    name: str
    room_type: str = "Standard"
    price_per_night: Decimal = Field(..., gt=0)
    capacity: int = Field(..., ge=1)

class RoomCreate(RoomBase):
    pass

class RoomUpdate(BaseModel):
    name: Optional[str] = None
    room_type: Optional[str] = None
    price_per_night: Optional[Decimal] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

class RoomResponse(RoomBase):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
