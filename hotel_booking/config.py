import os


# Database
DATABASE_URL = os.getenv("HOTEL_BOOKING_DATABASE_URL", "sqlite:///./data/hotel_booking.db")

# JWT configuration
SECRET_KEY = os.getenv("HOTEL_BOOKING_SECRET_KEY", "secure-secret-key-1234567890")
ALGORITHM = os.getenv("HOTEL_BOOKING_JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("HOTEL_BOOKING_TOKEN_EXPIRE_MINUTES", "30"))

# Booking policy
MAX_STAY_DAYS = int(os.getenv("HOTEL_BOOKING_MAX_STAY_DAYS", "30"))
"""Longest stay, in nights, a single booking may cover."""

# Commit protocol
COMMIT_LOCK_TIMEOUT_SECONDS = float(os.getenv("HOTEL_BOOKING_LOCK_TIMEOUT", "5"))
"""How long a commit waits for the per-room guard before giving up."""

COMMIT_MAX_ATTEMPTS = int(os.getenv("HOTEL_BOOKING_COMMIT_ATTEMPTS", "3"))
COMMIT_BACKOFF_SECONDS = float(os.getenv("HOTEL_BOOKING_COMMIT_BACKOFF", "0.05"))

LOG_LEVEL = os.getenv("HOTEL_BOOKING_LOG_LEVEL", "INFO")
