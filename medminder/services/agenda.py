from dataclasses import dataclass
from datetime import datetime
from typing import List
from medminder.engine.reconciliation import AgendaItem


EARLY_MORNING = "Early Morning"
MORNING = "Morning"
AFTERNOON = "Afternoon"
EVENING = "Evening"


@dataclass
class AgendaSection:
    title: str
    items: List[AgendaItem]
    is_current: bool


def period_of(hour: int) -> str:
    if hour < 5:
        return EARLY_MORNING
    if hour < 12:
        return MORNING
    if hour < 17:
        return AFTERNOON
    return EVENING


#------This Function groups a day of doses into day-part sections---------
def group_by_period(items: List[AgendaItem], now: datetime) -> List[AgendaSection]:
    current = period_of(now.hour)
    buckets = {EARLY_MORNING: [], MORNING: [], AFTERNOON: [], EVENING: []}
    for item in items:
        buckets[period_of(item.dose.instance.scheduled_time.hour)].append(item)

    sections = []
    for title in (EARLY_MORNING, MORNING, AFTERNOON, EVENING):
        if buckets[title]:
            sections.append(AgendaSection(title=title, items=buckets[title], is_current=title == current))
    return sections
