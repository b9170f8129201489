import math
from types import SimpleNamespace

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase

from apps.accounts.models import Account, AccountDepartment, Department
from apps.common.achievement import (
    MAX_PERCENT,
    STATUS_GREEN,
    STATUS_ORANGE,
    STATUS_RED,
    STATUS_YELLOW,
    average_percent,
    calculate_percent,
    progress_color,
    status_color,
    summarize_goal,
)
from apps.common.documents import (
    TRACKING_DIRECT,
    TRACKING_WEEKLY,
    HistoryEntry,
    PeriodProgress,
    WeekProgress,
    absolute_week,
    load_periods,
)
from apps.common.errors import PersistenceError, ReferentialIntegrityError
from apps.common.integrity import can_delete, ensure_deletable
from apps.common.store import load_or_error, persist
from apps.goals.models import AchievementValueType, OperationalGoal, StrategicGoal


def period(target, achieved=None, weekly_total=None, quarter="Q1"):
    return PeriodProgress(
        year="2025",
        quarter=quarter,
        target=target,
        achieved=achieved,
        weekly_total_achieved=weekly_total,
    )


class CalculatePercentTests(SimpleTestCase):
    def test_percentage_type_divides_by_target(self):
        percent = calculate_percent(period(50, achieved=25), TRACKING_DIRECT, value_type_name="percentage")
        self.assertEqual(percent, 50)
        self.assertEqual(status_color(percent), STATUS_ORANGE)

    def test_percentage_type_green_and_yellow_boundary(self):
        self.assertEqual(status_color(calculate_percent(period(100, achieved=80), TRACKING_DIRECT, value_type_name="percentage")), STATUS_GREEN)
        self.assertEqual(status_color(calculate_percent(period(100, achieved=79), TRACKING_DIRECT, value_type_name="percentage")), STATUS_YELLOW)

    def test_legacy_arabic_percentage_name(self):
        self.assertEqual(calculate_percent(period(0, achieved=40), TRACKING_DIRECT, value_type_name="نسبة مئوية"), 40)

    def test_numeric_zero_target_counts_as_complete(self):
        self.assertEqual(calculate_percent(period(0, achieved=5), TRACKING_DIRECT), 100)

    def test_percent_is_capped(self):
        self.assertEqual(calculate_percent(period(10, achieved=60), TRACKING_DIRECT), MAX_PERCENT)

    def test_missing_target_gives_zero(self):
        self.assertEqual(calculate_percent(period(None, achieved=5), TRACKING_DIRECT), 0)

    def test_weekly_prefers_weekly_total(self):
        self.assertEqual(calculate_percent(period(10, achieved=1, weekly_total=5), TRACKING_WEEKLY), 50)

    def test_weekly_falls_back_to_achieved(self):
        self.assertEqual(calculate_percent(period(10, achieved=3), TRACKING_WEEKLY), 30)

    def test_missing_method_is_treated_as_weekly(self):
        self.assertEqual(calculate_percent(period(10, achieved=1, weekly_total=2), None), 20)

    def test_direct_ignores_weekly_total(self):
        self.assertEqual(calculate_percent(period(10, achieved=1, weekly_total=9), TRACKING_DIRECT), 10)

    def test_reverse_does_not_change_percent(self):
        self.assertEqual(
            calculate_percent(period(10, achieved=9), TRACKING_DIRECT, is_reverse=True),
            calculate_percent(period(10, achieved=9), TRACKING_DIRECT),
        )

    def test_result_stays_in_range(self):
        cases = [(1, 10**9), (0.0001, 5), (3, 0), (0, 0), (10, math.nan), (10, math.inf), (math.nan, 5), (math.inf, 5)]
        for target, achieved in cases:
            percent = calculate_percent(period(target, achieved=achieved), TRACKING_DIRECT)
            self.assertGreaterEqual(percent, 0)
            self.assertLessEqual(percent, MAX_PERCENT)
            self.assertFalse(math.isnan(percent))


class StatusColorTests(SimpleTestCase):
    def test_buckets(self):
        self.assertEqual(status_color(49.9), STATUS_RED)
        self.assertEqual(status_color(50), STATUS_ORANGE)
        self.assertEqual(status_color(60), STATUS_ORANGE)
        self.assertEqual(status_color(61), STATUS_YELLOW)
        self.assertEqual(status_color(79), STATUS_YELLOW)
        self.assertEqual(status_color(80), STATUS_GREEN)

    def test_reverse_inverts_effective_percent(self):
        self.assertEqual(status_color(90, is_reverse=True), STATUS_RED)
        self.assertEqual(status_color(10, is_reverse=True), STATUS_GREEN)

    def test_progress_color_is_same_function(self):
        self.assertIs(progress_color, status_color)


class AverageTests(SimpleTestCase):
    def setUp(self):
        self.goal = SimpleNamespace(
            tracking_method=TRACKING_DIRECT,
            is_reverse=False,
            periods=lambda: [period(10, achieved=5, quarter="Q2"), period(10, achieved=10, quarter="Q1")],
        )

    def test_average_over_all_periods(self):
        self.assertEqual(average_percent(self.goal.periods(), goal=self.goal, value_type_names={}), 75)

    def test_average_filtered_by_quarter(self):
        self.assertEqual(
            average_percent(self.goal.periods(), goal=self.goal, value_type_names={}, quarter="Q2"),
            50,
        )

    def test_average_without_periods_is_zero(self):
        self.assertEqual(average_percent([], goal=self.goal, value_type_names={}), 0)

    def test_summary_sorts_periods_and_formats(self):
        summary = summarize_goal(self.goal, {})
        self.assertEqual([row["quarter"] for row in summary["periods"]], ["Q1", "Q2"])
        self.assertEqual(summary["avg_percent_text"], "75.0%")
        self.assertEqual(summary["status"], STATUS_YELLOW)


class DocumentTests(SimpleTestCase):
    def test_period_reads_legacy_shape(self):
        (loaded,) = load_periods(
            [{"year": 2025, "quarter": "Q3", "target": "12", "achievedType": "percentage", "achieved": 4}]
        )
        self.assertEqual(loaded.key, ("2025", "Q3"))
        self.assertEqual(loaded.target, 12)
        self.assertEqual(loaded.type_name({}), "percentage")
        self.assertTrue(loaded.references_value_type(type_id="7", type_name="percentage"))

    def test_type_id_wins_over_legacy_name(self):
        loaded = PeriodProgress.from_document({"year": "2025", "quarter": "Q1", "achievedTypeId": "3", "achievedType": "x"})
        self.assertEqual(loaded.type_name({"3": "numeric value"}), "numeric value")
        self.assertFalse(loaded.references_value_type(type_id="4", type_name="x"))

    def test_to_document_uses_camel_case_keys(self):
        document = PeriodProgress(
            year="2025",
            quarter="Q1",
            target=10,
            achieved_type_id="1",
            weekly_total_achieved=3,
            weeks=[WeekProgress(week=1, achieved=3)],
        ).to_document()
        self.assertEqual(document["weeklyTotalAchieved"], 3)
        self.assertEqual(document["achievedTypeId"], "1")
        self.assertEqual(document["weeks"], [{"week": 1, "achieved": 3}])

    def test_ensure_weeks_only_fills_missing_weeks(self):
        loaded = period(10, achieved=4)
        loaded.ensure_weeks()
        self.assertEqual([entry.week for entry in loaded.weeks], list(range(1, 14)))
        self.assertIsNone(loaded.weekly_total_achieved)

    def test_absolute_week(self):
        self.assertEqual(absolute_week("Q1", 1), 1)
        self.assertEqual(absolute_week("Q3", 2), 28)

    def test_history_entry_reads_iso_timestamp(self):
        entry = HistoryEntry.from_document(
            {"userId": 5, "year": "2025", "quarter": "Q1", "oldValue": 1, "newValue": 2, "changedAt": "2025-01-02T03:04:05+00:00"}
        )
        self.assertEqual(entry.user_id, "5")
        self.assertEqual(entry.changed_at.year, 2025)
        self.assertEqual(entry.to_document()["changedAt"], "2025-01-02T03:04:05+00:00")

    def test_history_entry_reads_utc_designator(self):
        entry = HistoryEntry.from_document(
            {"userId": "1", "year": "2024", "quarter": "Q1", "oldValue": 0, "newValue": 4, "changedAt": "2024-03-01T10:00:00.000Z"}
        )
        self.assertEqual(entry.changed_at.utcoffset().total_seconds(), 0)
        self.assertEqual(entry.changed_at.hour, 10)
        self.assertEqual(entry.to_document()["changedAt"], "2024-03-01T10:00:00+00:00")


class IntegrityGuardTests(TestCase):
    def setUp(self):
        self.department = Department.objects.create(name="Finance")
        self.strategic_goal = StrategicGoal.objects.create(goal="Grow", years=["2025"])
        self.value_type = AchievementValueType.objects.create(name="percentage")

    def test_unused_records_can_be_deleted(self):
        self.assertTrue(can_delete(self.department))
        self.assertTrue(can_delete(self.strategic_goal))
        self.assertTrue(can_delete(self.value_type))

    def test_department_referenced_by_goal_is_blocked(self):
        OperationalGoal.objects.create(goal="G", department=self.department, strategic_goal=self.strategic_goal)
        with self.assertRaises(ReferentialIntegrityError):
            ensure_deletable(self.department)
        self.assertTrue(Department.objects.filter(id=self.department.id).exists())

    def test_department_referenced_by_user_is_blocked(self):
        account = Account.objects.create(name="A", email="a@example.com", password="x")
        AccountDepartment.objects.create(account=account, department=self.department)
        self.assertFalse(can_delete(self.department))

    def test_strategic_goal_with_operational_goals_is_blocked(self):
        OperationalGoal.objects.create(goal="G", strategic_goal=self.strategic_goal)
        self.assertFalse(can_delete(self.strategic_goal))

    def test_value_type_referenced_by_id(self):
        OperationalGoal.objects.create(
            goal="G",
            progress=[{"year": "2025", "quarter": "Q1", "target": 1, "achievedTypeId": str(self.value_type.id)}],
        )
        self.assertFalse(can_delete(self.value_type))

    def test_value_type_referenced_by_legacy_name(self):
        OperationalGoal.objects.create(
            goal="G",
            progress=[{"year": "2025", "quarter": "Q1", "target": 1, "achievedType": "percentage"}],
        )
        self.assertFalse(can_delete(self.value_type))


class StoreTests(TestCase):
    def test_persist_translates_database_errors(self):
        with self.assertRaises(PersistenceError) as caught:
            with persist("save thing"):
                raise DatabaseError("boom")
        self.assertEqual(str(caught.exception), "Failed to save thing.")

    def test_load_or_error_degrades_to_message(self):
        def failing_loader():
            raise DatabaseError("boom")

        rows, error = load_or_error(failing_loader, what="goals")
        self.assertEqual(rows, [])
        self.assertEqual(error, "Failed to load goals.")

    def test_load_or_error_returns_rows(self):
        self.assertEqual(load_or_error(lambda: [1], what="goals"), ([1], None))
