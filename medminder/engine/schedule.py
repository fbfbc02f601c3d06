"""Immutable dosing schedule of one medication."""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


@dataclass(frozen=True)
class ScheduleModel:
    anchor_time: datetime
    frequency_hours: int
    duration_days: int

    def __post_init__(self):
        object.__setattr__(self, "anchor_time", truncate_to_minute(self.anchor_time))

    @classmethod
    def from_medication(cls, medication) -> "ScheduleModel":
        return cls(
            anchor_time=medication.initial_time,
            frequency_hours=medication.frequency_hours,
            duration_days=medication.duration_days,
        )

    @property
    def is_valid(self) -> bool:
        return self.frequency_hours > 0 and self.duration_days > 0

    @property
    def interval(self) -> timedelta:
        return timedelta(hours=self.frequency_hours)

    @property
    def end_time(self) -> datetime:
        # calendar days on wall-clock time; exclusive bound
        return self.anchor_time + timedelta(days=max(self.duration_days, 0))

    @property
    def max_instances(self) -> int:
        if not self.is_valid:
            return 0
        return -(-(self.duration_days * 24) // self.frequency_hours)

    def is_active_on(self, day_start: datetime, day_end: datetime) -> bool:
        return self.is_valid and day_start < self.end_time and self.anchor_time < day_end

    def reanchored(self, new_anchor: datetime) -> "ScheduleModel":
        return replace(self, anchor_time=new_anchor)
