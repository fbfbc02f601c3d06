import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional, Type
from pymongo import ASCENDING, IndexModel, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError
from medminder.core.errors import NotFoundError, StorageFailure
from medminder.db.base import DoseLogStore, RecordStore, RecordT, Stores, slot_key
from medminder.models.dose_log import DoseLogEntry
from medminder.models.medication import Medication
from medminder.models.profile import Profile
from medminder.models.treatment import Treatment

logger = logging.getLogger(__name__)


def _to_doc(record) -> dict:
    doc = {}
    for key, value in record.model_dump().items():
        doc[key] = value.value if isinstance(value, Enum) else value
    doc["_id"] = doc.pop("id")
    return doc


def _from_doc(model: Type[RecordT], doc: dict) -> RecordT:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return model.model_validate(doc)


class MongoRecordStore(RecordStore[RecordT]):

    def __init__(self, db: AsyncDatabase, model: Type[RecordT]):
        self.model = model
        self.collection = db[model.Settings.name]

#------This Function lists every record in the collection---------
    async def list_all(self) -> List[RecordT]:
        try:
            docs = await self.collection.find({}).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to list {self.kind} records: {e}")
            raise StorageFailure(f"Could not read {self.kind} records") from e
        return [_from_doc(self.model, d) for d in docs]

#------This Function gets a record by id---------
    async def get(self, record_id: str) -> Optional[RecordT]:
        try:
            doc = await self.collection.find_one({"_id": record_id})
        except PyMongoError as e:
            logger.error(f"Failed to get {self.kind} {record_id}: {e}")
            raise StorageFailure(f"Could not read {self.kind} {record_id}") from e
        return _from_doc(self.model, doc) if doc else None

#------This Function inserts a record---------
    async def insert(self, record: RecordT) -> RecordT:
        try:
            await self.collection.insert_one(_to_doc(record))
        except PyMongoError as e:
            logger.error(f"Failed to insert {self.kind} {record.id}: {e}")
            raise StorageFailure(f"Could not save {self.kind} {record.id}") from e
        return record

#------This Function replaces a record---------
    async def update(self, record: RecordT) -> RecordT:
        try:
            result = await self.collection.replace_one({"_id": record.id}, _to_doc(record))
        except PyMongoError as e:
            logger.error(f"Failed to update {self.kind} {record.id}: {e}")
            raise StorageFailure(f"Could not save {self.kind} {record.id}") from e
        if result.matched_count == 0:
            raise NotFoundError(self.kind, record.id)
        return record

#------This Function deletes a record---------
    async def delete(self, record_id: str) -> bool:
        try:
            result = await self.collection.delete_one({"_id": record_id})
        except PyMongoError as e:
            logger.error(f"Failed to delete {self.kind} {record_id}: {e}")
            raise StorageFailure(f"Could not delete {self.kind} {record_id}") from e
        return result.deleted_count > 0


class MongoDoseLogStore(DoseLogStore):

    def __init__(self, db: AsyncDatabase):
        self.collection = db[DoseLogEntry.Settings.name]

#------This Function creates database indexes---------
    async def ensure_indexes(self):
        try:
            indexes = [
                IndexModel(
                    [("medication_id", ASCENDING), ("scheduled_time", ASCENDING)],
                    unique=True,
                ),
            ]
            await self.collection.create_indexes(indexes)
        except PyMongoError as e:
            logger.error(f"Failed to create indexes: {e}")
            raise StorageFailure("Could not create dose log indexes") from e

    async def list_all(self) -> List[DoseLogEntry]:
        return await self._find({})

    async def list_for_medication(self, medication_id: str) -> List[DoseLogEntry]:
        return await self._find({"medication_id": medication_id})

#------This Function upserts the entry for one dose slot---------
    async def upsert_slot(self, entry: DoseLogEntry) -> DoseLogEntry:
        scheduled = slot_key(entry.scheduled_time)
        now = datetime.utcnow()
        try:
            doc = await self.collection.find_one_and_update(
                {"medication_id": entry.medication_id, "scheduled_time": scheduled},
                {
                    "$set": {
                        "taken_time": entry.taken_time,
                        "status": entry.status.value,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"_id": entry.id, "created_at": entry.created_at},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(
                f"Failed to record dose for medication {entry.medication_id} at {scheduled}: {e}"
            )
            raise StorageFailure("Could not record dose") from e
        return _from_doc(DoseLogEntry, doc)

    async def delete_for_medication(self, medication_id: str) -> int:
        try:
            result = await self.collection.delete_many({"medication_id": medication_id})
        except PyMongoError as e:
            logger.error(f"Failed to delete dose logs for {medication_id}: {e}")
            raise StorageFailure("Could not delete dose logs") from e
        return result.deleted_count

    async def _find(self, query: dict) -> List[DoseLogEntry]:
        try:
            docs = await self.collection.find(query).sort("scheduled_time", ASCENDING).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to read dose logs: {e}")
            raise StorageFailure("Could not read dose logs") from e
        return [_from_doc(DoseLogEntry, d) for d in docs]


#------This Function builds the MongoDB-backed stores---------
async def create_mongo_stores(db: AsyncDatabase) -> Stores:
    dose_logs = MongoDoseLogStore(db)
    await dose_logs.ensure_indexes()
    return Stores(
        profiles=MongoRecordStore(db, Profile),
        treatments=MongoRecordStore(db, Treatment),
        medications=MongoRecordStore(db, Medication),
        dose_logs=dose_logs,
    )
