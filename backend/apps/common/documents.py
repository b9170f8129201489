"""Period and history documents stored on operational goals.

Goals keep their quarterly progress and change history as JSON lists whose
keys follow the exported document shape (``weeklyTotalAchieved``,
``achievedTypeId``...). Older records carry the value type by name
(``achievedType``) instead of by id; both shapes are folded into one
``PeriodProgress`` here so callers never deal with the raw keys.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from django.utils.dateparse import parse_datetime

TRACKING_WEEKLY = "weekly"
TRACKING_DIRECT = "direct"
TRACKING_METHOD_CHOICES = [
    (TRACKING_WEEKLY, "Weekly"),
    (TRACKING_DIRECT, "Direct"),
]

QUARTERS = ("Q1", "Q2", "Q3", "Q4")
WEEKS_PER_QUARTER = 13

NOTE_WEEKLY_UPDATED = "weekly total updated"
NOTE_DIRECT_UPDATED = "direct value updated"


def parse_number(value) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def week_offset(quarter: str) -> int:
    if quarter not in QUARTERS:
        return 0
    return QUARTERS.index(quarter) * WEEKS_PER_QUARTER


def absolute_week(quarter: str, week: int) -> int:
    return week_offset(quarter) + week


@dataclass
class WeekProgress:
    week: int
    achieved: float = 0.0

    @classmethod
    def from_document(cls, data: dict) -> "WeekProgress":
        try:
            week = int(data.get("week") or 0)
        except (TypeError, ValueError):
            week = 0
        return cls(week=week, achieved=parse_number(data.get("achieved")) or 0.0)

    def to_document(self) -> dict:
        return {"week": self.week, "achieved": self.achieved}


def blank_weeks() -> list[WeekProgress]:
    return [WeekProgress(week=number) for number in range(1, WEEKS_PER_QUARTER + 1)]


@dataclass
class PeriodProgress:
    year: str
    quarter: str
    target: float | None = 0.0
    achieved: float | None = None
    achieved_type_id: str = ""
    legacy_type_name: str = ""
    weekly_total_achieved: float | None = None
    weeks: list[WeekProgress] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return (self.year, self.quarter)

    @classmethod
    def from_document(cls, data: dict) -> "PeriodProgress":
        return cls(
            year=str(data.get("year") or ""),
            quarter=str(data.get("quarter") or ""),
            target=parse_number(data.get("target")),
            achieved=parse_number(data.get("achieved")),
            achieved_type_id=str(data.get("achievedTypeId") or ""),
            legacy_type_name=str(data.get("achievedType") or ""),
            weekly_total_achieved=parse_number(data.get("weeklyTotalAchieved")),
            weeks=[WeekProgress.from_document(week) for week in data.get("weeks") or []],
        )

    def to_document(self) -> dict:
        document = {
            "year": self.year,
            "quarter": self.quarter,
            "target": self.target if self.target is not None else 0,
            "achieved": self.achieved if self.achieved is not None else 0,
        }
        if self.achieved_type_id:
            document["achievedTypeId"] = self.achieved_type_id
        if self.legacy_type_name:
            document["achievedType"] = self.legacy_type_name
        if self.weekly_total_achieved is not None:
            document["weeklyTotalAchieved"] = self.weekly_total_achieved
        if self.weeks:
            document["weeks"] = [week.to_document() for week in self.weeks]
        return document

    def type_name(self, value_type_names: dict[str, str]) -> str:
        return value_type_names.get(self.achieved_type_id, "") or self.legacy_type_name

    def references_value_type(self, *, type_id: str, type_name: str) -> bool:
        if self.achieved_type_id:
            return self.achieved_type_id == type_id
        return bool(type_name) and self.legacy_type_name == type_name

    def ensure_weeks(self) -> None:
        if not self.weeks:
            self.weeks = blank_weeks()


def period_sort_key(period: PeriodProgress) -> str:
    return period.year + period.quarter


def load_periods(documents) -> list[PeriodProgress]:
    return [PeriodProgress.from_document(document) for document in documents or []]


def dump_periods(periods) -> list[dict]:
    return [period.to_document() for period in periods]


@dataclass(frozen=True)
class HistoryEntry:
    user_id: str
    year: str
    quarter: str
    old_value: float
    new_value: float
    note: str
    changed_at: datetime

    @classmethod
    def from_document(cls, data: dict) -> "HistoryEntry":
        changed_at = data.get("changedAt")
        if isinstance(changed_at, str):
            changed_at = parse_datetime(changed_at)
        return cls(
            user_id=str(data.get("userId") or ""),
            year=str(data.get("year") or ""),
            quarter=str(data.get("quarter") or ""),
            old_value=parse_number(data.get("oldValue")) or 0.0,
            new_value=parse_number(data.get("newValue")) or 0.0,
            note=str(data.get("note") or ""),
            changed_at=changed_at,
        )

    def to_document(self) -> dict:
        return {
            "userId": self.user_id,
            "year": self.year,
            "quarter": self.quarter,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "note": self.note,
            "changedAt": self.changed_at.isoformat() if self.changed_at else None,
        }
