"""Appointment model definitions."""

from sqlalchemy import BigInteger, Boolean, Column, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from clinic_backend.database import Base

STATUS_SCHEDULED = 'scheduled'
STATUS_COMPLETED = 'completed'
STATUS_CANCELED = 'canceled'

SCHEDULED_SLOT_INDEX = 'uq_appointments_therapist_start_scheduled'


class Appointment(Base):
    """Represents a therapy session; start and end are epoch milliseconds."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            SCHEDULED_SLOT_INDEX,
            'therapist_id',
            'start_time',
            unique=True,
            sqlite_where=text("status = 'scheduled'"),
            postgresql_where=text("status = 'scheduled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    notes = Column(String)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    patient = relationship("User", foreign_keys=[patient_id])
    therapist = relationship("User", foreign_keys=[therapist_id])
