from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.core.errors import SchedulingError, to_http_exception
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from clinic_backend.services.scheduler import AvailabilityScheduler
from clinic_backend.services.scheduling import DayAvailability, TimeWindow

router = APIRouter(tags=['availability'])


class TimeWindowModel(BaseModel):
    start: str
    end: str

    @field_validator('start', 'end')
    @classmethod
    def strip_clock(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Time is required.')
        return normalized


class DayAvailabilityModel(BaseModel):
    day: int = Field(ge=0, le=6)
    slots: list[TimeWindowModel]


class AvailabilityUpdateRequest(BaseModel):
    actor_id: int
    availability: list[DayAvailabilityModel]


class WeeklyAvailabilityResponse(BaseModel):
    therapist_id: int
    availability: list[DayAvailabilityModel]


class SlotResponse(BaseModel):
    start: int
    end: int


def to_weekly_availability_response(therapist_id: int, entries: list[DayAvailability]) -> WeeklyAvailabilityResponse:
    return WeeklyAvailabilityResponse(
        therapist_id=therapist_id,
        availability=[
            DayAvailabilityModel(
                day=entry.day,
                slots=[TimeWindowModel(start=window.start, end=window.end) for window in entry.slots],
            )
            for entry in entries
        ],
    )


@router.get('/therapists/{therapist_id}', response_model=WeeklyAvailabilityResponse)
def get_therapist_availability(therapist_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        entries = AvailabilityScheduler(db).get_weekly_availability(therapist_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_weekly_availability_response(therapist_id, entries)


@router.put('/therapists/{therapist_id}', response_model=WeeklyAvailabilityResponse)
def replace_therapist_availability(
    therapist_id: int,
    data: AvailabilityUpdateRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    entries = [
        DayAvailability(
            day=entry.day,
            slots=tuple(TimeWindow(start=window.start, end=window.end) for window in entry.slots),
        )
        for entry in data.availability
    ]

    try:
        saved = AvailabilityScheduler(db).replace_weekly_availability(therapist_id, data.actor_id, entries)
    except SchedulingError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_weekly_availability_response(therapist_id, saved)


@router.get('/slots', response_model=list[SlotResponse])
def list_available_slots(
    therapist_id: int = Query(...),
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = AvailabilityScheduler(db).compute_available_slots(therapist_id, slot_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [SlotResponse(start=slot.start, end=slot.end) for slot in slots]
