import logging
from threading import Event, Thread
from typing import Callable, Optional

from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.services.scheduler import AvailabilityScheduler, MaintenanceResult

logger = logging.getLogger(__name__)


class MaintenanceWorker:
    """Runs the appointment sweep on a background thread at a fixed interval."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or config.MAINTENANCE_INTERVAL_SECONDS
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return

        self._stop_event.clear()
        self._thread = Thread(target=self._run, name='appointment-maintenance', daemon=True)
        self._thread.start()
        logger.info('Appointment maintenance started (every %ss)', self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> MaintenanceResult:
        db = self.session_factory()
        try:
            return AvailabilityScheduler(db).run_periodic_maintenance()
        finally:
            db.close()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception('Appointment maintenance sweep failed; retrying next interval.')
            self._stop_event.wait(self.interval_seconds)
