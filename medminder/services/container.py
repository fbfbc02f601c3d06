import logging
from typing import Optional
from medminder.db.base import Stores
from medminder.engine.reminders import ReminderScheduler
from medminder.services.dose_ledger import DoseLedger
from medminder.services.dose_service import DoseService
from medminder.services.locks import MedicationLocks
from medminder.services.notifications import NotificationCenter
from medminder.services.records import RecordService

logger = logging.getLogger(__name__)


class Services:

    def __init__(self, stores: Stores, center: NotificationCenter, clock, settings):
        self.stores = stores
        self.center = center
        self.clock = clock
        self.locks = MedicationLocks()
        self.ledger = DoseLedger(stores.dose_logs)
        self.scheduler = ReminderScheduler.from_settings(center, clock, settings)
        self.doses = DoseService(
            stores,
            self.ledger,
            self.scheduler,
            clock,
            self.locks,
            action_window_hours=settings.action_window_hours,
            reanchor_threshold_minutes=settings.reanchor_threshold_minutes,
        )
        self.records = RecordService(stores, self.ledger, self.scheduler, self.locks)


_services: Optional[Services] = None


#------This Function installs the service container---------
def init_services(services: Optional[Services]) -> None:
    global _services
    _services = services


#------This Function returns the service container---------
def get_services() -> Services:
    if _services is None:
        raise RuntimeError("Services not initialized. Start the application first.")
    return _services


def get_dose_service() -> DoseService:
    return get_services().doses


def get_record_service() -> RecordService:
    return get_services().records
