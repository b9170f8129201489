from django.db import models

from apps.accounts.models import Department
from apps.common.documents import (
    TRACKING_METHOD_CHOICES,
    TRACKING_WEEKLY,
    HistoryEntry,
    PeriodProgress,
    load_periods,
)

DISPLAY_GENERAL = "general"
DISPLAY_OPERATIONAL = "operational"
DISPLAY_OPTION_CHOICES = [
    (DISPLAY_GENERAL, "General dashboard"),
    (DISPLAY_OPERATIONAL, "Operational goals page"),
]

DEFAULT_ICON = "fa-tasks"


def default_display_options():
    return [DISPLAY_GENERAL, DISPLAY_OPERATIONAL]


class AchievementValueType(models.Model):
    name = models.CharField(max_length=128, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class StrategicGoal(models.Model):
    goal = models.TextField()
    years = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]

    def __str__(self) -> str:
        return self.goal

    @property
    def years_label(self) -> str:
        return ", ".join(self.years or [])


class OperationalGoal(models.Model):
    goal = models.TextField()
    strategic_goal = models.ForeignKey(
        StrategicGoal,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="operational_goals",
    )
    strategic_goal_text = models.TextField(blank=True)
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="operational_goals",
    )
    indicator = models.TextField(blank=True)
    tracking_method = models.CharField(
        max_length=16,
        choices=TRACKING_METHOD_CHOICES,
        default=TRACKING_WEEKLY,
    )
    weight = models.FloatField(default=0)
    exclude_from_calculation = models.BooleanField(default=False)
    is_reverse = models.BooleanField(default=False)
    calculation_method = models.TextField(blank=True)
    display_options = models.JSONField(default=default_display_options)
    icon = models.CharField(max_length=64, default=DEFAULT_ICON)
    progress = models.JSONField(default=list)
    history = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["goal", "id"]

    def __str__(self) -> str:
        return self.goal

    def save(self, *args, **kwargs):
        if self.exclude_from_calculation:
            self.weight = 0
        super().save(*args, **kwargs)

    def periods(self) -> list[PeriodProgress]:
        return load_periods(self.progress)

    def history_entries(self) -> list[HistoryEntry]:
        return [HistoryEntry.from_document(entry) for entry in self.history or []]

    def shows_on(self, display: str) -> bool:
        return display in (self.display_options or [])
