from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.core.errors import SchedulingError, to_http_exception
from clinic_backend.models.appointment import Appointment, STATUS_COMPLETED
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from clinic_backend.services.scheduler import AvailabilityScheduler
from clinic_backend.services.storage import AppointmentStore

router = APIRouter(tags=['appointments'])

MAX_DURATION_MINUTES = 8 * 60


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class BookAppointmentRequest(BaseModel):
    therapist_id: int
    patient_id: int
    start: int = Field(gt=0, description='Slot start in epoch milliseconds.')
    notes: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0, le=MAX_DURATION_MINUTES)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class CancelAppointmentRequest(BaseModel):
    actor_id: int


class AppointmentNotesRequest(BaseModel):
    actor_id: int
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    therapist_id: int
    start: int
    end: int
    status: str
    notes: str | None = None
    reminder_sent: bool


class MaintenanceRunResponse(BaseModel):
    completed: int
    reminded: int
    notifications: int
    failed: int


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        therapist_id=appointment.therapist_id,
        start=appointment.start_time,
        end=appointment.end_time,
        status=appointment.status,
        notes=appointment.notes,
        reminder_sent=bool(appointment.reminder_sent),
    )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    therapist_id: Optional[int] = Query(default=None),
    patient_id: Optional[int] = Query(default=None),
    start: Optional[int] = Query(default=None),
    end: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    if therapist_id is None and patient_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Provide a therapist_id or a patient_id.',
        )

    ensure_database_ready()

    try:
        appointments = AppointmentStore(db).list_appointments(therapist_id, start, end, patient_id=patient_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_appointment_response(appointment) for appointment in appointments]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(data: BookAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = AvailabilityScheduler(db).book_appointment(
            data.therapist_id,
            data.patient_id,
            data.start,
            notes=data.notes,
            duration_minutes=data.duration_minutes,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.post('/maintenance', response_model=MaintenanceRunResponse)
def run_maintenance(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        result = AvailabilityScheduler(db).run_periodic_maintenance()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    completed = sum(1 for appointment in result.updated if appointment.status == STATUS_COMPLETED)
    return MaintenanceRunResponse(
        completed=completed,
        reminded=len(result.updated) - completed,
        notifications=len(result.notifications),
        failed=len(result.failed),
    )


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(appointment_id: int, data: CancelAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = AvailabilityScheduler(db).cancel_appointment(appointment_id, data.actor_id)
    except SchedulingError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = AvailabilityScheduler(db).complete_appointment(appointment_id)
    except SchedulingError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_appointment_response(appointment)


@router.patch('/{appointment_id}/notes', response_model=AppointmentResponse)
def update_appointment_notes(appointment_id: int, data: AppointmentNotesRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = AvailabilityScheduler(db).update_notes(appointment_id, data.actor_id, data.notes)
    except SchedulingError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_appointment_response(appointment)
