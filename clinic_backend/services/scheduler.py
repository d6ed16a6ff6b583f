"""Availability scheduling on top of the appointments table.

``AvailabilityScheduler`` is the only writer of appointment status. Every
status change is a conditional UPDATE on the current status, and a booking
re-checks for overlaps inside the transaction that inserts it, after bumping
the therapist's ``booking_version``. That write makes concurrent bookings for
one therapist wait for each other, so two overlapping requests cannot both
commit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.core.clock import current_time_ms
from clinic_backend.core.errors import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
    ScheduleValidationError,
    SchedulingError,
)
from clinic_backend.models.appointment import (
    SCHEDULED_SLOT_INDEX,
    STATUS_CANCELED,
    STATUS_COMPLETED,
    STATUS_SCHEDULED,
    Appointment,
)
from clinic_backend.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_THERAPIST, User
from clinic_backend.services.notifier import DatabaseNotifier, NotificationMessage
from clinic_backend.services.scheduling import (
    HOUR_MS,
    LOCKED_APPOINTMENT_MESSAGE,
    MINUTE_MS,
    DayAvailability,
    Slot,
    compute_available_slots,
    day_bounds_ms,
    drop_past_slots,
    ensure_transition,
    find_conflicts,
    fits_availability,
    ms_to_local,
    plan_maintenance,
    validate_weekly_availability,
)
from clinic_backend.services.storage import AppointmentStore, AvailabilityStore

logger = logging.getLogger(__name__)

# SQLite reports the columns of a violated unique index, not its name.
_SQLITE_SLOT_INDEX_COLUMNS = 'appointments.therapist_id, appointments.start_time'


def is_double_booking(exc: IntegrityError) -> bool:
    """True when ``exc`` comes from the one-scheduled-appointment-per-start index."""
    message = str(exc.orig)
    return SCHEDULED_SLOT_INDEX in message or _SQLITE_SLOT_INDEX_COLUMNS in message


@dataclass
class MaintenanceResult:
    updated: list = field(default_factory=list)
    notifications: list[NotificationMessage] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class AvailabilityScheduler:
    def __init__(
        self,
        db: Session,
        *,
        notifier=None,
        slot_minutes: Optional[int] = None,
        reminder_lead_hours: Optional[int] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.db = db
        self.appointments = AppointmentStore(db)
        self.availability = AvailabilityStore(db)
        self.notifier = notifier or DatabaseNotifier(db)
        self.slot_minutes = slot_minutes or config.SLOT_DURATION_MINUTES
        self.reminder_lead_ms = (reminder_lead_hours or config.REMINDER_LEAD_HOURS) * HOUR_MS
        self.tz = tz or config.get_clinic_timezone()

    # Availability

    def get_weekly_availability(self, therapist_id: int) -> list[DayAvailability]:
        self._get_user(therapist_id, ROLE_THERAPIST)
        return self.availability.load(therapist_id)

    def replace_weekly_availability(
        self,
        therapist_id: int,
        actor_id: int,
        entries: Sequence[DayAvailability],
    ) -> list[DayAvailability]:
        self._get_user(therapist_id, ROLE_THERAPIST)
        actor = self._get_user(actor_id)
        if actor.role != ROLE_ADMIN and actor.id != therapist_id:
            raise PermissionDenied('Only the therapist or an admin can change this availability.')

        normalized = validate_weekly_availability(entries)
        self.availability.replace(therapist_id, normalized)
        self.db.commit()
        logger.info('Replaced weekly availability for therapist %s (%d days)', therapist_id, len(normalized))

        return normalized

    def compute_available_slots(
        self,
        therapist_id: int,
        day: date,
        now_ms: Optional[int] = None,
    ) -> list[Slot]:
        self._get_user(therapist_id, ROLE_THERAPIST)
        availability = self.availability.load(therapist_id)
        day_start, day_end = day_bounds_ms(day, self.tz)
        existing = self.appointments.list_appointments(
            therapist_id,
            day_start,
            day_end,
            statuses=[STATUS_SCHEDULED],
        )

        slots = compute_available_slots(availability, day, existing, self.slot_minutes, self.tz)
        return drop_past_slots(slots, current_time_ms() if now_ms is None else now_ms)

    # Appointment lifecycle

    def book_appointment(
        self,
        therapist_id: int,
        patient_id: int,
        start_ms: int,
        notes: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        now_ms: Optional[int] = None,
    ) -> Appointment:
        try:
            appointment = self._insert_appointment(
                therapist_id,
                patient_id,
                start_ms,
                notes,
                duration_minutes or self.slot_minutes,
                current_time_ms() if now_ms is None else now_ms,
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not is_double_booking(exc):
                raise
            raise ConflictError('This time is already booked.') from exc
        except SchedulingError:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            'Booked appointment %s for therapist %s at %s',
            appointment.id,
            therapist_id,
            appointment.start_time,
        )
        return appointment

    def cancel_appointment(self, appointment_id: int, actor_id: int) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        actor = self._get_user(actor_id)
        if actor.role != ROLE_ADMIN and actor.id not in (appointment.patient_id, appointment.therapist_id):
            raise PermissionDenied('You are not allowed to cancel this appointment.')

        self._transition(appointment, STATUS_CANCELED)
        counterparty_id = appointment.therapist_id if actor.id == appointment.patient_id else appointment.patient_id
        self._notify(
            counterparty_id,
            f'Your appointment on {self.format_when(appointment.start_time)} was canceled by {actor.name}.',
        )
        self.db.commit()
        self.db.refresh(appointment)
        logger.info('Appointment %s canceled by user %s', appointment_id, actor_id)

        return appointment

    def complete_appointment(self, appointment_id: int) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        self._transition(appointment, STATUS_COMPLETED)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info('Appointment %s marked completed', appointment_id)

        return appointment

    def update_notes(self, appointment_id: int, actor_id: int, notes: Optional[str]) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        actor = self._get_user(actor_id)
        if actor.role != ROLE_ADMIN and actor.id != appointment.therapist_id:
            raise PermissionDenied('Only the appointment\'s therapist can edit its notes.')

        appointment.notes = notes
        self.db.commit()
        self.db.refresh(appointment)

        return appointment

    # Periodic sweep

    def run_periodic_maintenance(self, now_ms: Optional[int] = None, appointments=None) -> MaintenanceResult:
        """Complete finished appointments and send due reminders.

        A failure on one appointment is logged and rolled back; the rest of the
        batch still runs.
        """
        now = current_time_ms() if now_ms is None else now_ms
        if appointments is None:
            appointments = self.appointments.list_maintenance_candidates(now + self.reminder_lead_ms)

        plan = plan_maintenance(now, appointments, self.reminder_lead_ms)
        result = MaintenanceResult()

        for appointment in plan.to_complete:
            self._apply_maintenance_step(result, appointment, self._auto_complete)
        for appointment in plan.to_remind:
            self._apply_maintenance_step(result, appointment, self._send_reminders)

        if result.updated or result.failed:
            logger.info(
                'Maintenance sweep: %d updated, %d notifications, %d failed',
                len(result.updated),
                len(result.notifications),
                len(result.failed),
            )
        return result

    def format_when(self, value_ms: int) -> str:
        return ms_to_local(value_ms, self.tz).strftime('%d.%m.%Y %H:%M')

    def _apply_maintenance_step(self, result: MaintenanceResult, appointment, step) -> None:
        appointment_id = appointment.id
        try:
            messages = step(appointment)
            if not messages:
                self.db.rollback()
                return
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception('Maintenance failed for appointment %s', appointment_id)
            result.failed.append(appointment_id)
            return

        result.updated.append(self.appointments.get(appointment_id))
        result.notifications.extend(messages)

    def _auto_complete(self, appointment) -> list[NotificationMessage]:
        if not self.appointments.compare_and_set_status(appointment.id, STATUS_SCHEDULED, STATUS_COMPLETED):
            return []

        return [
            self._notify(
                appointment.therapist_id,
                f'Your session on {self.format_when(appointment.start_time)} has ended. '
                'Please add your clinical notes.',
            )
        ]

    def _send_reminders(self, appointment) -> list[NotificationMessage]:
        if not self.appointments.mark_reminder_sent(appointment.id):
            return []

        when = self.format_when(appointment.start_time)
        return [
            self._notify(appointment.patient_id, f'Reminder: you have a therapy session on {when}.'),
            self._notify(appointment.therapist_id, f'Reminder: you have a patient session on {when}.'),
        ]

    def _insert_appointment(
        self,
        therapist_id: int,
        patient_id: int,
        start_ms: int,
        notes: Optional[str],
        duration_minutes: int,
        now_ms: int,
    ) -> Appointment:
        therapist = self._lock_therapist(therapist_id)
        patient = self._get_user(patient_id, ROLE_PATIENT)
        end_ms = start_ms + duration_minutes * MINUTE_MS

        if start_ms <= now_ms:
            raise ScheduleValidationError('Appointments must be scheduled in the future.')

        availability = self.availability.load(therapist.id)
        if not fits_availability(availability, start_ms, end_ms, self.slot_minutes, self.tz):
            raise ScheduleValidationError('The requested time is not an open slot for this therapist.')

        existing = self.appointments.list_appointments(
            therapist.id,
            start_ms,
            end_ms,
            statuses=[STATUS_SCHEDULED],
        )
        if find_conflicts(start_ms, end_ms, existing):
            raise ConflictError('This time is already booked.')

        appointment = self.appointments.save_appointment(
            Appointment(
                patient_id=patient.id,
                therapist_id=therapist.id,
                start_time=start_ms,
                end_time=end_ms,
                status=STATUS_SCHEDULED,
                notes=notes,
                reminder_sent=False,
            )
        )
        self._notify(
            therapist.id,
            f'New appointment booked by {patient.name} on {self.format_when(start_ms)}.',
        )

        return appointment

    def _transition(self, appointment: Appointment, target: str) -> None:
        ensure_transition(appointment.status, target)
        if not self.appointments.compare_and_set_status(appointment.id, STATUS_SCHEDULED, target):
            self.db.rollback()
            raise InvalidStateTransition(LOCKED_APPOINTMENT_MESSAGE)

    def _notify(self, user_id: int, text: str) -> NotificationMessage:
        self.notifier.notify(user_id, text)
        return NotificationMessage(user_id=user_id, text=text)

    def _lock_therapist(self, therapist_id: int) -> User:
        # A write, not SELECT ... FOR UPDATE: SQLite ignores FOR UPDATE but
        # serializes writers, and Postgres row-locks the updated user.
        touched = self.db.query(User).filter(
            User.id == therapist_id,
            User.role == ROLE_THERAPIST,
        ).update({User.booking_version: User.booking_version + 1}, synchronize_session=False)
        if not touched:
            raise NotFoundError('Therapist not found.')
        return self.db.get(User, therapist_id)

    def _get_user(self, user_id: int, role: Optional[str] = None) -> User:
        user = self.db.get(User, user_id)
        if user is None or (role is not None and user.role != role):
            raise NotFoundError(f'{(role or "user").capitalize()} not found.')
        return user

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundError('Appointment not found.')
        return appointment
