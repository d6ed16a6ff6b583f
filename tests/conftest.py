import os
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_backend.database import Base  # noqa: E402
from clinic_backend.models.appointment import Appointment, STATUS_SCHEDULED  # noqa: E402
from clinic_backend.models.availability import AvailabilityWindow  # noqa: E402,F401
from clinic_backend.models.notification import Notification  # noqa: E402,F401
from clinic_backend.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_THERAPIST, User  # noqa: E402
from clinic_backend.services.scheduling import DayAvailability, TimeWindow  # noqa: E402
from clinic_backend.services.storage import AvailabilityStore  # noqa: E402

MONDAY = datetime(2026, 1, 5).date()


def to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp()) * 1000


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clinic(db_session):
    """An admin, two therapists and two patients; the first therapist works Mondays 09:00-12:00."""
    admin = User(email='admin@clinic.example', name='Admin', role=ROLE_ADMIN)
    therapist = User(email='therapist@clinic.example', name='Dr. Kaya', role=ROLE_THERAPIST)
    other_therapist = User(email='other.therapist@clinic.example', name='Dr. Demir', role=ROLE_THERAPIST)
    patient = User(email='patient@clinic.example', name='Ayse', role=ROLE_PATIENT)
    other_patient = User(email='other.patient@clinic.example', name='Mehmet', role=ROLE_PATIENT)
    db_session.add_all([admin, therapist, other_therapist, patient, other_patient])
    db_session.commit()

    AvailabilityStore(db_session).replace(
        therapist.id,
        [DayAvailability(day=1, slots=(TimeWindow(start='09:00', end='12:00'),))],
    )
    db_session.commit()

    return SimpleNamespace(
        db=db_session,
        admin_id=admin.id,
        therapist_id=therapist.id,
        other_therapist_id=other_therapist.id,
        patient_id=patient.id,
        other_patient_id=other_patient.id,
    )


@pytest.fixture
def add_appointment(clinic):
    def _add(start: datetime, end: datetime, status: str = STATUS_SCHEDULED, reminder_sent: bool = False) -> Appointment:
        appointment = Appointment(
            patient_id=clinic.patient_id,
            therapist_id=clinic.therapist_id,
            start_time=to_ms(start),
            end_time=to_ms(end),
            status=status,
            reminder_sent=reminder_sent,
        )
        clinic.db.add(appointment)
        clinic.db.commit()
        clinic.db.refresh(appointment)
        return appointment

    return _add
