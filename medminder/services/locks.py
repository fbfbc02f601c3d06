import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict


#------This Class serializes all writes that touch one medication---------
class MedicationLocks:

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, medication_id: str):
        lock = self._locks[medication_id]
        async with lock:
            yield

    def is_held(self, medication_id: str) -> bool:
        return medication_id in self._locks and self._locks[medication_id].locked()

    def discard(self, medication_id: str) -> None:
        lock = self._locks.get(medication_id)
        if lock is not None and not lock.locked():
            del self._locks[medication_id]
