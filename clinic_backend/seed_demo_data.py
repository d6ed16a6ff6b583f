"""Create demo users and a weekday availability for local development.

Usage:
    python -m clinic_backend.seed_demo_data
"""
import sys

from sqlalchemy.exc import SQLAlchemyError

from clinic_backend.database import Base, SessionLocal, engine
from clinic_backend.models import appointment, availability, notification  # noqa: F401
from clinic_backend.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_THERAPIST, User
from clinic_backend.services.scheduling import DayAvailability, TimeWindow, validate_weekly_availability
from clinic_backend.services.storage import AvailabilityStore

DEMO_USERS = [
    ('admin@clinic.example', 'Clinic Admin', ROLE_ADMIN),
    ('therapist@clinic.example', 'Dr. Elif Kaya', ROLE_THERAPIST),
    ('patient@clinic.example', 'Ayse Yilmaz', ROLE_PATIENT),
]

WEEKDAY_HOURS = (
    TimeWindow(start='09:00', end='12:00'),
    TimeWindow(start='13:00', end='17:00'),
)


def seed(db) -> dict[str, User]:
    users: dict[str, User] = {}
    for email, name, role in DEMO_USERS:
        existing = db.query(User).filter(User.email == email).first()
        users[role] = existing or User(email=email, name=name, role=role)
        db.add(users[role])
    db.flush()

    therapist = users[ROLE_THERAPIST]
    store = AvailabilityStore(db)
    if not store.load(therapist.id):
        weekly = validate_weekly_availability(DayAvailability(day=day, slots=WEEKDAY_HOURS) for day in range(1, 6))
        store.replace(therapist.id, weekly)

    db.commit()
    return users


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        users = seed(db)
        for role, seeded_user in users.items():
            print(f"{role}: id={seeded_user.id} email={seeded_user.email}")
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"Seeding failed: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
