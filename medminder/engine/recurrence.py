"""Expected dose instants of a schedule.

Instants are produced lazily over a half-open window ``[start, end)`` and
are further bounded by the schedule's own ``[anchor, end_time)``. Stepping
adds a fixed interval to the previous instant so consecutive doses are
always exactly ``frequency_hours`` apart.
"""
from datetime import datetime
from typing import Iterator, List, Optional
from medminder.engine.schedule import ScheduleModel


def generate(
    schedule: ScheduleModel, window_start: datetime, window_end: datetime
) -> Iterator[datetime]:
    if not schedule.is_valid or window_end <= window_start:
        return

    anchor = schedule.anchor_time
    interval = schedule.interval
    end = min(window_end, schedule.end_time)

    if anchor >= window_start:
        candidate = anchor
    else:
        # whole intervals needed to land on or after window_start
        steps = -(-(window_start - anchor) // interval)
        candidate = anchor + steps * interval

    while candidate < end:
        yield candidate
        candidate += interval


def expected_instances(schedule: ScheduleModel) -> List[datetime]:
    return list(generate(schedule, schedule.anchor_time, schedule.end_time))


def count_instances(schedule: ScheduleModel) -> int:
    return sum(1 for _ in generate(schedule, schedule.anchor_time, schedule.end_time))


#------This Function returns the first instant at or after a moment---------
def next_instance(schedule: ScheduleModel, after: datetime) -> Optional[datetime]:
    return next(generate(schedule, after, schedule.end_time), None)
