from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String
from hotel_booking.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default="user")

    bookings = relationship("Booking", back_populates="user")
