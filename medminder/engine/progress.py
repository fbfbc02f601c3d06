from dataclasses import dataclass
from typing import Iterable, Tuple
from medminder.engine.recurrence import count_instances
from medminder.engine.schedule import ScheduleModel
from medminder.models.dose_log import DoseLogEntry


@dataclass(frozen=True)
class ProgressResult:
    progress: float
    is_completed: bool
    logged_count: int
    expected_count: int


EMPTY_PROGRESS = ProgressResult(progress=0.0, is_completed=False, logged_count=0, expected_count=0)


#------This Function computes adherence over the whole lifetime of a schedule---------
def progress(schedule: ScheduleModel, log_entries: Iterable[DoseLogEntry]) -> ProgressResult:
    if not schedule.is_valid:
        return EMPTY_PROGRESS

    expected = count_instances(schedule)
    logged = sum(1 for e in log_entries if e.is_logged)

    return ProgressResult(
        progress=min(logged / expected, 1.0) if expected > 0 else 0.0,
        is_completed=expected > 0 and logged >= expected,
        logged_count=logged,
        expected_count=expected,
    )


#------This Function rolls medication progress up to a treatment---------
def rollup(members: Iterable[Tuple[ScheduleModel, Iterable[DoseLogEntry]]]) -> ProgressResult:
    results = [progress(schedule, entries) for schedule, entries in members]
    if not results:
        return EMPTY_PROGRESS

    return ProgressResult(
        progress=sum(r.progress for r in results) / len(results),
        is_completed=all(r.is_completed for r in results),
        logged_count=sum(r.logged_count for r in results),
        expected_count=sum(r.expected_count for r in results),
    )
