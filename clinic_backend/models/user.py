"""User model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_backend.database import Base

ROLE_PATIENT = 'patient'
ROLE_THERAPIST = 'therapist'
ROLE_ADMIN = 'admin'


class User(Base):
    """Represents a patient, therapist or clinic admin."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(String)  # patient/therapist/admin
    # Bumped inside every booking transaction so concurrent bookings for one
    # therapist queue behind the first writer.
    booking_version = Column(Integer, nullable=False, default=0, server_default="0")
