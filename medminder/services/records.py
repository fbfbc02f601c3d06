import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from medminder.core.errors import NotFoundError
from medminder.db.base import Stores
from medminder.engine.reminders import ReminderScheduler
from medminder.models.medication import Medication
from medminder.models.profile import Profile
from medminder.models.treatment import Treatment
from medminder.services.dose_ledger import DoseLedger
from medminder.services.locks import MedicationLocks

logger = logging.getLogger(__name__)


class RecordService:

    def __init__(
        self,
        stores: Stores,
        ledger: DoseLedger,
        scheduler: ReminderScheduler,
        locks: MedicationLocks,
    ):
        self.stores = stores
        self.ledger = ledger
        self.scheduler = scheduler
        self.locks = locks

    async def _require(self, store, record_id: str):
        record = await store.get(record_id)
        if record is None:
            raise NotFoundError(store.kind, record_id)
        return record

    # Profiles

    async def list_profiles(self) -> List[Profile]:
        profiles = await self.stores.profiles.list_all()
        return sorted(profiles, key=lambda p: (p.name.lower(), p.id))

    async def get_profile(self, profile_id: str) -> Profile:
        return await self._require(self.stores.profiles, profile_id)

    async def create_profile(self, profile: Profile) -> Profile:
        await self.stores.profiles.insert(profile)
        logger.info(f"Created profile {profile.id}")
        return profile

    async def update_profile(self, profile: Profile) -> Profile:
        profile.updated_at = datetime.utcnow()
        return await self.stores.profiles.update(profile)

#------This Function deletes a profile and detaches its treatments---------
    async def delete_profile(self, profile_id: str) -> None:
        await self._require(self.stores.profiles, profile_id)
        for treatment in await self.stores.treatments.list_all():
            if treatment.profile_id == profile_id:
                treatment.profile_id = None
                treatment.updated_at = datetime.utcnow()
                await self.stores.treatments.update(treatment)
        await self.stores.profiles.delete(profile_id)
        logger.info(f"Deleted profile {profile_id}")

    # Treatments

    async def list_treatments(self, profile_id: Optional[str] = None) -> List[Treatment]:
        treatments = await self.stores.treatments.list_all()
        if profile_id is not None:
            treatments = [t for t in treatments if t.profile_id == profile_id]
        return sorted(treatments, key=lambda t: (t.start_date, t.id))

    async def get_treatment(self, treatment_id: str) -> Treatment:
        return await self._require(self.stores.treatments, treatment_id)

    async def create_treatment(self, treatment: Treatment) -> Treatment:
        if treatment.profile_id is not None:
            await self._require(self.stores.profiles, treatment.profile_id)
        await self.stores.treatments.insert(treatment)
        logger.info(f"Created treatment {treatment.id}")
        return treatment

    async def update_treatment(self, treatment: Treatment) -> Treatment:
        if treatment.profile_id is not None:
            await self._require(self.stores.profiles, treatment.profile_id)
        treatment.updated_at = datetime.utcnow()
        return await self.stores.treatments.update(treatment)

#------This Function deletes a treatment with its medications---------
    async def delete_treatment(self, treatment_id: str) -> None:
        await self._require(self.stores.treatments, treatment_id)
        for medication in await self.list_medications(treatment_id):
            await self.delete_medication(medication.id)
        await self.stores.treatments.delete(treatment_id)
        logger.info(f"Deleted treatment {treatment_id}")

    # Medications

    async def list_medications(self, treatment_id: Optional[str] = None) -> List[Medication]:
        medications = await self.stores.medications.list_all()
        if treatment_id is not None:
            medications = [m for m in medications if m.treatment_id == treatment_id]
        return sorted(medications, key=lambda m: (m.initial_time, m.name, m.id))

    async def get_medication(self, medication_id: str) -> Medication:
        return await self._require(self.stores.medications, medication_id)

#------This Function creates a medication and schedules its reminders---------
    async def create_medication(self, medication: Medication) -> Medication:
        await self._require(self.stores.treatments, medication.treatment_id)
        async with self.locks.hold(medication.id):
            await self.stores.medications.insert(medication)
            logger.info(f"Created medication {medication.id} in treatment {medication.treatment_id}")
            await self.scheduler.resync(medication, [])
        return medication

#------This Function updates a medication and reschedules its reminders---------
    async def update_medication(self, medication_id: str, changes: Dict[str, Any]) -> Medication:
        # read, change and write under one lock so a concurrent re-anchor is not lost
        async with self.locks.hold(medication_id):
            current = await self._require(self.stores.medications, medication_id)
            medication = current.model_copy(update={**changes, "id": medication_id, "updated_at": datetime.utcnow()})
            await self._require(self.stores.treatments, medication.treatment_id)
            await self.stores.medications.update(medication)
            entries = await self.ledger.query_by(medication.id)
            await self.scheduler.resync(medication, entries)
        return medication

#------This Function deletes a medication with its dose log and reminders---------
    async def delete_medication(self, medication_id: str) -> None:
        async with self.locks.hold(medication_id):
            await self._require(self.stores.medications, medication_id)
            cancelled = await self.scheduler.cancel(medication_id)
            if not cancelled.ok:
                logger.warning(f"Reminders of medication {medication_id} could not be cancelled: {cancelled.error}")
            await self.ledger.delete_for_medication(medication_id)
            await self.stores.medications.delete(medication_id)
        self.locks.discard(medication_id)
        logger.info(f"Deleted medication {medication_id}")
