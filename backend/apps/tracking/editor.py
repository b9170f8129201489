"""In-memory editing of a goal's progress with history on commit.

The editor works on a copy of the goal's periods. ``commit`` compares each
period's effective achieved value with the persisted one, appends one history
entry per changed period and writes ``progress`` and ``history`` in a single
save. Two commits racing on the same goal overwrite each other's progress;
the last write wins.
"""

import copy
import logging
import math

from django.utils import timezone

from apps.common.achievement import effective_achieved
from apps.common.documents import (
    NOTE_DIRECT_UPDATED,
    NOTE_WEEKLY_UPDATED,
    TRACKING_DIRECT,
    TRACKING_WEEKLY,
    HistoryEntry,
    PeriodProgress,
    dump_periods,
)
from apps.common.errors import ValidationError
from apps.common.store import persist

logger = logging.getLogger(__name__)


class ProgressEditor:
    def __init__(self, goal):
        self.goal = goal
        self.tracking_method = goal.tracking_method or TRACKING_WEEKLY
        self._original = {period.key: period for period in goal.periods()}
        self.periods = [copy.deepcopy(period) for period in self._original.values()]
        if self.tracking_method == TRACKING_WEEKLY:
            for period in self.periods:
                period.ensure_weeks()
        self.dirty: set[tuple[str, str]] = set()

    @property
    def has_changes(self) -> bool:
        return bool(self.dirty)

    def period(self, year: str, quarter: str) -> PeriodProgress:
        for period in self.periods:
            if period.key == (str(year), str(quarter)):
                return period
        raise ValidationError(f"The period {year} {quarter} does not exist on this goal.")

    @staticmethod
    def _check_value(value) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Enter a number.") from None
        if math.isnan(value) or value < 0:
            raise ValidationError("The achieved value must be zero or more.")
        return value

    def set_weekly_achieved(self, year: str, quarter: str, week: int, value) -> None:
        if self.tracking_method != TRACKING_WEEKLY:
            raise ValidationError("This goal is not tracked weekly.")
        value = self._check_value(value)
        period = self.period(year, quarter)
        matches = [entry for entry in period.weeks if entry.week == int(week)]
        if not matches:
            raise ValidationError(f"Week {week} does not exist in {year} {quarter}.")
        for entry in matches:
            entry.achieved = value
        period.weekly_total_achieved = sum(entry.achieved for entry in period.weeks)
        self.dirty.add(period.key)

    def set_direct_achieved(self, year: str, quarter: str, value) -> None:
        if self.tracking_method != TRACKING_DIRECT:
            raise ValidationError("This goal is not tracked with direct values.")
        value = self._check_value(value)
        period = self.period(year, quarter)
        period.achieved = value
        self.dirty.add(period.key)

    def pending_changes(self, acting_user_id: str) -> list[HistoryEntry]:
        note = NOTE_WEEKLY_UPDATED if self.tracking_method == TRACKING_WEEKLY else NOTE_DIRECT_UPDATED
        changed_at = timezone.now()
        entries = []
        for period in self.periods:
            original = self._original.get(period.key)
            old_value = effective_achieved(original, self.tracking_method) if original else 0.0
            new_value = effective_achieved(period, self.tracking_method)
            if new_value == old_value:
                continue
            entries.append(
                HistoryEntry(
                    user_id=str(acting_user_id),
                    year=period.year,
                    quarter=period.quarter,
                    old_value=old_value,
                    new_value=new_value,
                    note=note,
                    changed_at=changed_at,
                )
            )
        return entries

    def commit(self, acting_user_id: str) -> list[HistoryEntry]:
        entries = self.pending_changes(acting_user_id)
        if not entries and not self.dirty:
            return []

        progress = dump_periods(self.periods)
        history = list(self.goal.history or []) + [entry.to_document() for entry in entries]
        previous = (self.goal.progress, self.goal.history)
        try:
            with persist("save progress"):
                self.goal.progress = progress
                self.goal.history = history
                self.goal.save(update_fields=["progress", "history", "updated_at"])
        except Exception:
            self.goal.progress, self.goal.history = previous
            raise

        self._original = {period.key: copy.deepcopy(period) for period in self.periods}
        self.dirty.clear()
        logger.info(
            "Saved progress of operational goal %s by user %s (%d changed periods)",
            self.goal.id,
            acting_user_id,
            len(entries),
        )
        return entries
