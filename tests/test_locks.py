"""Tests for per-medication write locks."""

import asyncio

import pytest

from medminder.services.locks import MedicationLocks


class TestMedicationLocks:
    @pytest.mark.asyncio
    async def test_hold_marks_medication_busy(self):
        locks = MedicationLocks()
        async with locks.hold("med-1"):
            assert locks.is_held("med-1")
            assert not locks.is_held("med-2")
        assert not locks.is_held("med-1")

    @pytest.mark.asyncio
    async def test_writes_to_one_medication_are_serialized(self):
        locks = MedicationLocks()
        order = []

        async def write(tag):
            async with locks.hold("med-1"):
                order.append(f"{tag}-start")
                await asyncio.sleep(0)
                order.append(f"{tag}-end")

        await asyncio.gather(write("a"), write("b"))
        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_discard_skips_held_lock(self):
        locks = MedicationLocks()
        async with locks.hold("med-1"):
            locks.discard("med-1")
            assert locks.is_held("med-1")
        locks.discard("med-1")
        assert not locks.is_held("med-1")
