from typing import Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from clinic_backend.models.appointment import Appointment, STATUS_SCHEDULED
from clinic_backend.models.availability import AvailabilityWindow
from clinic_backend.services.scheduling import DayAvailability, TimeWindow


class AppointmentStore:
    """Appointment reads and writes on a caller-owned session.

    Nothing here commits; the scheduler decides where a transaction ends.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.get(Appointment, appointment_id)

    def list_appointments(
        self,
        therapist_id: Optional[int] = None,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
        *,
        patient_id: Optional[int] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> Sequence[Appointment]:
        query = self.db.query(Appointment)
        if therapist_id is not None:
            query = query.filter(Appointment.therapist_id == therapist_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if start_ms is not None:
            query = query.filter(Appointment.end_time > start_ms)
        if end_ms is not None:
            query = query.filter(Appointment.start_time < end_ms)
        if statuses is not None:
            query = query.filter(Appointment.status.in_(list(statuses)))
        return query.order_by(Appointment.start_time.asc()).all()

    def list_maintenance_candidates(self, horizon_ms: int) -> Sequence[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.status == STATUS_SCHEDULED,
            Appointment.start_time <= horizon_ms,
        ).order_by(Appointment.start_time.asc()).all()

    def save_appointment(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def compare_and_set_status(self, appointment_id: int, expected: str, target: str) -> bool:
        updated = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.status == expected,
        ).update({Appointment.status: target}, synchronize_session=False)
        return updated == 1

    def mark_reminder_sent(self, appointment_id: int) -> bool:
        updated = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.status == STATUS_SCHEDULED,
            Appointment.reminder_sent.is_(False),
        ).update({Appointment.reminder_sent: True}, synchronize_session=False)
        return updated == 1


class AvailabilityStore:
    def __init__(self, db: Session):
        self.db = db

    def load(self, therapist_id: int) -> list[DayAvailability]:
        rows = self.db.query(AvailabilityWindow).filter(
            AvailabilityWindow.therapist_id == therapist_id,
        ).order_by(AvailabilityWindow.day_of_week.asc(), AvailabilityWindow.start_time.asc()).all()

        by_day: dict[int, list[TimeWindow]] = {}
        for row in rows:
            by_day.setdefault(row.day_of_week, []).append(TimeWindow(start=row.start_time, end=row.end_time))

        return [DayAvailability(day=day, slots=tuple(windows)) for day, windows in sorted(by_day.items())]

    def replace(self, therapist_id: int, entries: Sequence[DayAvailability]) -> None:
        self.db.query(AvailabilityWindow).filter(
            AvailabilityWindow.therapist_id == therapist_id,
        ).delete(synchronize_session=False)

        for entry in entries:
            for window in entry.slots:
                self.db.add(
                    AvailabilityWindow(
                        therapist_id=therapist_id,
                        day_of_week=entry.day,
                        start_time=window.start,
                        end_time=window.end,
                    )
                )
        self.db.flush()
