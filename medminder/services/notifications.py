import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set
from firebase_admin import messaging
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError
from medminder.core.config import settings
from medminder.core.errors import StorageFailure, TriggerCreationFailure

logger = logging.getLogger(__name__)


class PendingTrigger(BaseModel):
    id: str
    title: str
    body: str
    fire_at: datetime
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "pending_triggers"


def _resolve_fire_at(now: datetime, fire_at: Optional[datetime], fire_after_seconds: Optional[int]) -> datetime:
    if fire_at is not None:
        return fire_at
    if fire_after_seconds is not None:
        return now + timedelta(seconds=fire_after_seconds)
    raise ValueError("Either fire_at or fire_after_seconds is required")


#------This Class defines the local notification store---------
class NotificationCenter(ABC):

    def __init__(self, clock):
        self.clock = clock

    @abstractmethod
    async def create_trigger(
        self,
        trigger_id: str,
        title: str,
        body: str,
        fire_at: Optional[datetime] = None,
        fire_after_seconds: Optional[int] = None,
    ) -> None:
        ...

    @abstractmethod
    async def cancel_triggers(self, trigger_ids: Iterable[str]) -> None:
        ...

    @abstractmethod
    async def list_pending_trigger_ids(self) -> Set[str]:
        ...

    @abstractmethod
    async def pop_due(self, now: datetime) -> List[PendingTrigger]:
        """Remove and return every trigger whose fire time has come."""


class InMemoryNotificationCenter(NotificationCenter):

    def __init__(self, clock):
        super().__init__(clock)
        self._pending: Dict[str, PendingTrigger] = {}

    async def create_trigger(self, trigger_id, title, body, fire_at=None, fire_after_seconds=None):
        if trigger_id in self._pending:
            raise TriggerCreationFailure(trigger_id, "already pending")
        self._pending[trigger_id] = PendingTrigger(
            id=trigger_id,
            title=title,
            body=body,
            fire_at=_resolve_fire_at(self.clock.now(), fire_at, fire_after_seconds),
        )

    async def cancel_triggers(self, trigger_ids):
        for ident in trigger_ids:
            self._pending.pop(ident, None)

    async def list_pending_trigger_ids(self):
        return set(self._pending)

    async def pop_due(self, now):
        due = sorted(
            (t for t in self._pending.values() if t.fire_at <= now),
            key=lambda t: t.fire_at,
        )
        for trigger in due:
            del self._pending[trigger.id]
        return due

    def get(self, trigger_id: str) -> Optional[PendingTrigger]:
        return self._pending.get(trigger_id)


class MongoNotificationCenter(NotificationCenter):

    def __init__(self, db: AsyncDatabase, clock):
        super().__init__(clock)
        self.collection = db[PendingTrigger.Settings.name]

#------This Function creates database indexes---------
    async def ensure_indexes(self):
        try:
            await self.collection.create_indexes([IndexModel([("fire_at", ASCENDING)])])
        except PyMongoError as e:
            logger.error(f"Failed to create indexes: {e}")
            raise StorageFailure("Could not create trigger indexes") from e

#------This Function stores a pending trigger---------
    async def create_trigger(self, trigger_id, title, body, fire_at=None, fire_after_seconds=None):
        doc = {
            "_id": trigger_id,
            "title": title,
            "body": body,
            "fire_at": _resolve_fire_at(self.clock.now(), fire_at, fire_after_seconds),
            "created_at": datetime.utcnow(),
        }
        try:
            await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise TriggerCreationFailure(trigger_id, "already pending") from e
        except PyMongoError as e:
            raise TriggerCreationFailure(trigger_id, str(e)) from e

    async def cancel_triggers(self, trigger_ids):
        ids = list(trigger_ids)
        if not ids:
            return
        try:
            await self.collection.delete_many({"_id": {"$in": ids}})
        except PyMongoError as e:
            logger.error(f"Failed to cancel triggers: {e}")
            raise StorageFailure("Could not cancel triggers") from e

    async def list_pending_trigger_ids(self):
        try:
            docs = await self.collection.find({}, {"_id": 1}).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to list pending triggers: {e}")
            raise StorageFailure("Could not list triggers") from e
        return {d["_id"] for d in docs}

#------This Function claims the triggers that are due---------
    async def pop_due(self, now):
        due = []
        try:
            cursor = self.collection.find({"fire_at": {"$lte": now}}).sort("fire_at", ASCENDING)
            for doc in await cursor.to_list(length=None):
                # a trigger cancelled in between is simply not delivered
                claimed = await self.collection.find_one_and_delete({"_id": doc["_id"]})
                if claimed:
                    claimed["id"] = claimed.pop("_id")
                    due.append(PendingTrigger.model_validate(claimed))
        except PyMongoError as e:
            logger.error(f"Failed to read due triggers: {e}")
            raise StorageFailure("Could not read due triggers") from e
        return due


class NotificationService:

#------This Function sends notification---------
    async def send_notification(
        self,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
        topic: Optional[str] = None,
    ) -> bool:
        try:

            if data:
                data = {k: str(v) for k, v in data.items()}

            message = messaging.Message(
                notification=messaging.Notification(
                    title=title,
                    body=body,
                ),
                data=data or {},
                topic=topic or settings.fcm_topic,
                android=messaging.AndroidConfig(
                    priority="high",
                    notification=messaging.AndroidNotification(
                        sound="default",
                        priority="high",
                    ),
                ),
                apns=messaging.APNSConfig(
                    payload=messaging.APNSPayload(
                        aps=messaging.Aps(
                            sound="default",
                        ),
                    ),
                ),
            )

            messaging.send(message)
            logger.info(f"Sent notification '{title}' to topic {topic or settings.fcm_topic}")
            return True

        except Exception as e:
            logger.error(f"Failed to send notification: {str(e)}")
            return False

#------This Function sends a dose reminder---------
    async def send_dose_reminder(self, trigger: PendingTrigger) -> bool:
        return await self.send_notification(
            title=trigger.title,
            body=trigger.body,
            data={
                "type": "dose_reminder",
                "trigger_id": trigger.id,
            },
        )


notification_service = NotificationService()
