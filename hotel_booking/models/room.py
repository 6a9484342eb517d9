from sqlalchemy.orm import relationship
from sqlalchemy import Boolean, Column, Integer, Numeric, String
from hotel_booking.db import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    room_type = Column(String(50), nullable=False, default="Standard")
    price_per_night = Column(Numeric(10, 2), nullable=False)
    capacity = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    bookings = relationship("Booking", back_populates="room")
