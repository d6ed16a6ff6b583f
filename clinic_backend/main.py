import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_backend.core import config
from clinic_backend.database import (
    Base,
    SessionLocal,
    engine,
    ensure_appointment_schema,
    ensure_availability_schema,
    ensure_user_schema,
)
from clinic_backend.models import appointment, availability, notification, user  # noqa: F401
from clinic_backend.routes import appointment_routes, availability_routes, notification_routes
from clinic_backend.services.maintenance import MaintenanceWorker

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)

config.validate_runtime_config()

app = FastAPI(title='Clinic Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)

maintenance_worker = MaintenanceWorker(SessionLocal)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_user_schema()
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.on_event('startup')
def start_maintenance_worker() -> None:
    if config.MAINTENANCE_SWEEP_ENABLED:
        maintenance_worker.start()


@app.on_event('shutdown')
def stop_maintenance_worker() -> None:
    maintenance_worker.stop()


@app.get('/')
def root():
    return {'status': 'Clinic Scheduling API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(notification_routes.router, prefix='/notifications')
