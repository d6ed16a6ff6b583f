import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

# Wall-clock availability windows ("09:00") are read in this zone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
REMINDER_LEAD_HOURS = int(os.getenv("REMINDER_LEAD_HOURS", "24"))

MAINTENANCE_SWEEP_ENABLED = _get_bool(os.getenv("MAINTENANCE_SWEEP_ENABLED"), default=True)
MAINTENANCE_INTERVAL_SECONDS = int(os.getenv("MAINTENANCE_INTERVAL_SECONDS", "60"))

MAX_APPOINTMENT_NOTES_LENGTH = int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH", "600"))


def get_clinic_timezone() -> ZoneInfo:
    return ZoneInfo(CLINIC_TIMEZONE)


def validate_runtime_config() -> None:
    if SLOT_DURATION_MINUTES <= 0 or 24 * 60 % SLOT_DURATION_MINUTES != 0:
        raise RuntimeError("SLOT_DURATION_MINUTES must be a positive divisor of 1440.")
    if REMINDER_LEAD_HOURS <= 0:
        raise RuntimeError("REMINDER_LEAD_HOURS must be positive.")
    if MAINTENANCE_INTERVAL_SECONDS <= 0:
        raise RuntimeError("MAINTENANCE_INTERVAL_SECONDS must be positive.")
    try:
        get_clinic_timezone()
    except ZoneInfoNotFoundError as exc:
        raise RuntimeError(f"Unknown CLINIC_TIMEZONE: {CLINIC_TIMEZONE}") from exc
