import json
import tempfile
from io import StringIO
from pathlib import Path

from django.contrib.auth.hashers import check_password, make_password
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from apps.accounts.models import ROLE_MANAGER, ROLE_USER, Account, AccountDepartment, Department
from apps.common.documents import NOTE_DIRECT_UPDATED, TRACKING_DIRECT, TRACKING_WEEKLY
from apps.common.errors import DuplicateNameError, ReferentialIntegrityError, ValidationError
from apps.goals.filters import filter_goals, week_options
from apps.goals.models import DISPLAY_GENERAL, AchievementValueType, OperationalGoal, StrategicGoal
from apps.goals.services import (
    create_operational_goal,
    create_value_type,
    delete_strategic_goal,
    delete_value_type,
    update_operational_goal,
    update_strategic_goal,
)


def sign_in_as(client, *, role=ROLE_MANAGER, departments=()):
    account = Account.objects.create(
        name=role,
        email=f"{role}@example.com",
        password=make_password("secret"),
        role=role,
    )
    for department in departments:
        AccountDepartment.objects.create(account=account, department=department)
    session = client.session
    session["account_id"] = account.id
    session.save()
    return account


def goal_data(*, strategic_goal, department, periods, **overrides):
    data = {
        "goal": "Raise revenue",
        "strategic_goal": strategic_goal,
        "department": department,
        "indicator": "Revenue",
        "tracking_method": TRACKING_WEEKLY,
        "weight": "2",
        "exclude_from_calculation": False,
        "is_reverse": False,
        "calculation_method": "",
        "display_options": [DISPLAY_GENERAL],
        "icon": "",
        "periods": periods,
    }
    data.update(overrides)
    return data


class OperationalGoalServiceTests(TestCase):
    def setUp(self):
        self.department = Department.objects.create(name="Sales")
        self.strategic_goal = StrategicGoal.objects.create(goal="Grow", years=["2025"])
        self.value_type = AchievementValueType.objects.create(name="numeric value")

    def test_weekly_goal_gets_blank_weeks(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10"}],
            )
        )
        (period,) = goal.periods()
        self.assertEqual(len(period.weeks), 13)
        self.assertEqual(period.weekly_total_achieved, 0)
        self.assertEqual(period.achieved_type_id, str(self.value_type.id))
        self.assertEqual(goal.strategic_goal_text, "Grow")
        self.assertEqual(goal.icon, "fa-tasks")

    def test_excluded_goal_has_zero_weight(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10"}],
                exclude_from_calculation=True,
            )
        )
        self.assertEqual(goal.weight, 0)

    def test_year_outside_strategic_goal_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_operational_goal(
                data=goal_data(
                    strategic_goal=self.strategic_goal,
                    department=self.department,
                    periods=[{"year": "2030", "quarter": "Q1", "target": "10"}],
                )
            )

    def test_duplicate_period_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_operational_goal(
                data=goal_data(
                    strategic_goal=self.strategic_goal,
                    department=self.department,
                    periods=[
                        {"year": "2025", "quarter": "Q1", "target": "10"},
                        {"year": "2025", "quarter": "q1", "target": "5"},
                    ],
                )
            )

    def test_negative_target_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_operational_goal(
                data=goal_data(
                    strategic_goal=self.strategic_goal,
                    department=self.department,
                    periods=[{"year": "2025", "quarter": "Q1", "target": "-1"}],
                )
            )

    def test_edit_keeps_recorded_achievement(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10"}],
            )
        )
        progress = goal.progress
        progress[0]["weeklyTotalAchieved"] = 4
        progress[0]["weeks"][0]["achieved"] = 4
        goal.progress = progress
        goal.save()

        update_operational_goal(
            goal,
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                periods=[
                    {"year": "2025", "quarter": "Q1", "target": "20"},
                    {"year": "2025", "quarter": "Q2", "target": "5"},
                ],
            ),
        )
        goal.refresh_from_db()
        first, second = goal.periods()
        self.assertEqual(first.target, 20)
        self.assertEqual(first.weekly_total_achieved, 4)
        self.assertEqual(len(second.weeks), 13)

    def test_switch_to_weekly_starts_weekly_total_from_weeks(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                tracking_method=TRACKING_DIRECT,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10", "achieved": "3"}],
            )
        )
        update_operational_goal(
            goal,
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10"}],
            ),
        )
        goal.refresh_from_db()
        (period,) = goal.periods()
        self.assertEqual(len(period.weeks), 13)
        self.assertEqual(period.weekly_total_achieved, 0)
        self.assertEqual(period.weekly_total_achieved, sum(entry.achieved for entry in period.weeks))

    def test_direct_achieved_edit_is_recorded_in_history(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                tracking_method=TRACKING_DIRECT,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10", "achieved": "3"}],
            )
        )
        self.assertEqual(goal.history, [])

        update_operational_goal(
            goal,
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                tracking_method=TRACKING_DIRECT,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10", "achieved": "7"}],
            ),
            acting_user_id="5",
        )
        goal.refresh_from_db()
        self.assertEqual(goal.periods()[0].achieved, 7)
        (entry,) = goal.history_entries()
        self.assertEqual((entry.user_id, entry.old_value, entry.new_value), ("5", 3, 7))
        self.assertEqual(entry.note, NOTE_DIRECT_UPDATED)

    def test_unchanged_direct_achieved_adds_no_history(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                tracking_method=TRACKING_DIRECT,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10", "achieved": "3"}],
            )
        )
        update_operational_goal(
            goal,
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                tracking_method=TRACKING_DIRECT,
                periods=[{"year": "2025", "quarter": "Q1", "target": "12", "achieved": "3"}],
            ),
            acting_user_id="5",
        )
        goal.refresh_from_db()
        self.assertEqual(goal.periods()[0].target, 12)
        self.assertEqual(goal.history, [])

    def test_strategic_goal_rename_updates_copied_text(self):
        goal = create_operational_goal(
            data=goal_data(
                strategic_goal=self.strategic_goal,
                department=self.department,
                periods=[{"year": "2025", "quarter": "Q1", "target": "10"}],
            )
        )
        update_strategic_goal(self.strategic_goal, goal="Grow faster", years=["2025"])
        goal.refresh_from_db()
        self.assertEqual(goal.strategic_goal_text, "Grow faster")

    def test_strategic_goal_in_use_cannot_be_deleted(self):
        OperationalGoal.objects.create(goal="G", strategic_goal=self.strategic_goal)
        with self.assertRaises(ReferentialIntegrityError):
            delete_strategic_goal(self.strategic_goal)

    def test_value_type_names_are_unique(self):
        with self.assertRaises(DuplicateNameError):
            create_value_type(name="Numeric Value")

    def test_value_type_in_use_cannot_be_deleted(self):
        OperationalGoal.objects.create(
            goal="G",
            progress=[{"year": "2025", "quarter": "Q1", "target": 1, "achievedTypeId": str(self.value_type.id)}],
        )
        with self.assertRaises(ReferentialIntegrityError):
            delete_value_type(self.value_type)
        self.assertTrue(AchievementValueType.objects.filter(id=self.value_type.id).exists())


class FilterTests(TestCase):
    def setUp(self):
        self.sales = Department.objects.create(name="Sales")
        self.ops = Department.objects.create(name="Operations")
        self.weekly = OperationalGoal.objects.create(
            goal="Calls made",
            department=self.sales,
            tracking_method=TRACKING_WEEKLY,
            progress=[{"year": "2025", "quarter": "Q2", "target": 1, "weeks": [{"week": 2, "achieved": 0}]}],
        )
        self.direct = OperationalGoal.objects.create(
            goal="Audit",
            department=self.ops,
            tracking_method=TRACKING_DIRECT,
            progress=[{"year": "2025", "quarter": "Q1", "target": 1}],
        )
        self.names = {self.sales.id: "Sales", self.ops.id: "Operations"}

    def run_filter(self, **filters):
        return filter_goals(OperationalGoal.objects.all(), department_names=self.names, **filters)

    def test_all_means_no_filter(self):
        self.assertEqual(len(self.run_filter(department_id="all", quarter="all", method="all")), 2)

    def test_search_matches_department_name(self):
        self.assertEqual(self.run_filter(search="operations"), [self.direct])

    def test_quarter_filter(self):
        self.assertEqual(self.run_filter(quarter="Q2"), [self.weekly])

    def test_relative_week_within_quarter(self):
        self.assertEqual(self.run_filter(method=TRACKING_WEEKLY, quarter="Q2", week="2"), [self.weekly])

    def test_absolute_week_without_quarter(self):
        self.assertEqual(self.run_filter(method=TRACKING_WEEKLY, week="15"), [self.weekly])
        self.assertEqual(self.run_filter(method=TRACKING_WEEKLY, week="2"), [])

    def test_week_options(self):
        self.assertEqual(week_options(quarter="Q1", method=TRACKING_DIRECT), [])
        self.assertEqual(len(week_options(quarter="Q1", method=TRACKING_WEEKLY)), 14)
        self.assertEqual(len(week_options(quarter="all", method=TRACKING_WEEKLY)), 53)


class StrategicGoalViewTests(TestCase):
    def setUp(self):
        sign_in_as(self.client)
        self.year = str(timezone.localdate().year)

    def test_add_strategic_goal(self):
        response = self.client.post(reverse("strategic_goal_settings"), {"goal": "Expand", "years": [self.year]})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(StrategicGoal.objects.get().years, [self.year])

    def test_edit_strategic_goal(self):
        strategic_goal = StrategicGoal.objects.create(goal="Old", years=[self.year])
        self.client.post(
            reverse("strategic_goal_settings"),
            {"edit_goal_id": str(strategic_goal.id), "goal": "New", "years": [self.year]},
        )
        strategic_goal.refresh_from_db()
        self.assertEqual(strategic_goal.goal, "New")

    def test_delete_blocked_shows_message(self):
        strategic_goal = StrategicGoal.objects.create(goal="Used", years=[self.year])
        OperationalGoal.objects.create(goal="G", strategic_goal=strategic_goal)
        response = self.client.post(reverse("strategic_goal_delete", args=[strategic_goal.id]), follow=True)
        self.assertContains(response, "operational goals are linked to it")
        self.assertTrue(StrategicGoal.objects.filter(id=strategic_goal.id).exists())

    def test_user_cannot_manage_strategic_goals(self):
        self.client.logout()
        sign_in_as(self.client, role=ROLE_USER)
        response = self.client.get(reverse("strategic_goal_settings"))
        self.assertEqual(response.status_code, 302)


class OperationalGoalViewTests(TestCase):
    def setUp(self):
        sign_in_as(self.client)
        self.department = Department.objects.create(name="Sales")
        self.strategic_goal = StrategicGoal.objects.create(goal="Grow", years=["2025"])

    def test_create_goal_from_form(self):
        response = self.client.post(
            reverse("operational_goal_create"),
            {
                "strategic_goal": self.strategic_goal.id,
                "department": self.department.id,
                "goal": "Win deals",
                "indicator": "Deals",
                "tracking_method": TRACKING_DIRECT,
                "weight": "1",
                "display_on_general": "on",
                "period_year": ["2025", ""],
                "period_quarter": ["Q1", "Q1"],
                "period_target": ["8", ""],
                "period_achieved": ["2", ""],
                "period_type": ["", ""],
            },
        )
        self.assertEqual(response.status_code, 302)
        goal = OperationalGoal.objects.get(goal="Win deals")
        self.assertEqual(goal.display_options, [DISPLAY_GENERAL])
        self.assertEqual(goal.periods()[0].achieved, 2)

    def test_list_hides_goals_not_shown_on_operational_page(self):
        OperationalGoal.objects.create(goal="Visible", department=self.department)
        OperationalGoal.objects.create(goal="Hidden", department=self.department, display_options=[DISPLAY_GENERAL])
        response = self.client.get(reverse("operational_goal_list"))
        self.assertContains(response, "Visible")
        self.assertNotContains(response, "Hidden")

    def test_list_search(self):
        OperationalGoal.objects.create(goal="Alpha", department=self.department)
        OperationalGoal.objects.create(goal="Beta", department=self.department)
        response = self.client.get(reverse("operational_goal_list"), {"search": "alp"})
        self.assertContains(response, "Alpha")
        self.assertNotContains(response, "Beta")


class ManagementCommandTests(TestCase):
    def test_seed_value_types_only_when_empty(self):
        call_command("seed_default_value_types", stdout=StringIO())
        self.assertEqual(
            set(AchievementValueType.objects.values_list("name", flat=True)),
            {"percentage", "numeric value"},
        )
        AchievementValueType.objects.filter(name="percentage").delete()
        call_command("seed_default_value_types", stdout=StringIO())
        self.assertEqual(AchievementValueType.objects.count(), 1)
        call_command("seed_default_value_types", "--force", stdout=StringIO())
        self.assertEqual(AchievementValueType.objects.count(), 2)

    def test_import_documents_normalizes_legacy_shapes(self):
        export = {
            "departments": [{"id": "d1", "name": "Sales"}],
            "achievementValueTypes": [{"id": "t1", "name": "percentage"}],
            "users": [
                {"id": "u1", "name": "Boss", "email": "Boss@Example.com", "password": "plain", "role": "مدير", "departmentId": "d1"}
            ],
            "strategicGoals": [{"id": "s1", "goal": "Grow", "years": ["2025"]}],
            "operationalGoals": [
                {
                    "id": "o1",
                    "goal": "Calls",
                    "strategicGoalId": "s1",
                    "departmentId": "d1",
                    "progress": [{"year": "2025", "quarter": "Q1", "target": 10, "achievedType": "percentage"}],
                    "history": [
                        {"userId": "u1", "changedAt": {"seconds": 0, "nanoseconds": 0}},
                        {"userId": "u1", "changedAt": "2024-03-01T10:00:00.000Z"},
                    ],
                }
            ],
        }
        with tempfile.TemporaryDirectory() as directory:
            path = Path(directory) / "export.json"
            path.write_text(json.dumps(export), encoding="utf-8")
            call_command("import_documents", str(path), stdout=StringIO())

        account = Account.objects.get(email="boss@example.com")
        self.assertEqual(account.role, ROLE_MANAGER)
        self.assertTrue(check_password("plain", account.password))
        self.assertEqual(list(account.departments.values_list("name", flat=True)), ["Sales"])

        goal = OperationalGoal.objects.get(goal="Calls")
        value_type = AchievementValueType.objects.get(name="percentage")
        self.assertEqual(goal.department.name, "Sales")
        self.assertEqual(goal.strategic_goal_text, "Grow")
        self.assertEqual(goal.periods()[0].achieved_type_id, str(value_type.id))
        self.assertEqual(goal.history[0]["userId"], str(account.id))
        self.assertTrue(goal.history[0]["changedAt"].startswith("1970-01-01"))
        self.assertEqual(goal.history[1]["changedAt"], "2024-03-01T10:00:00+00:00")
