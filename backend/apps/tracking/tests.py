from unittest import mock

from django.contrib.auth.hashers import make_password
from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse

from apps.accounts.models import ROLE_MANAGER, ROLE_USER, Account, AccountDepartment, Department
from apps.common.documents import (
    NOTE_DIRECT_UPDATED,
    NOTE_WEEKLY_UPDATED,
    TRACKING_DIRECT,
    TRACKING_WEEKLY,
    blank_weeks,
)
from apps.common.errors import PersistenceError, ValidationError
from apps.goals.models import OperationalGoal
from apps.tracking.editor import ProgressEditor


def weekly_period(year="2025", quarter="Q1", target=10):
    return {
        "year": year,
        "quarter": quarter,
        "target": target,
        "achieved": 0,
        "weeklyTotalAchieved": 0,
        "weeks": [week.to_document() for week in blank_weeks()],
    }


def make_goal(*, department=None, tracking_method=TRACKING_WEEKLY, progress=None):
    return OperationalGoal.objects.create(
        goal="Calls made",
        department=department,
        tracking_method=tracking_method,
        progress=progress if progress is not None else [weekly_period(), weekly_period(quarter="Q2")],
    )


def sign_in_as(client, *, role, departments=()):
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


class ProgressEditorTests(TestCase):
    def test_weekly_total_tracks_week_sum(self):
        editor = ProgressEditor(make_goal())
        editor.set_weekly_achieved("2025", "Q1", 1, 3)
        editor.set_weekly_achieved("2025", "Q1", 2, 4.5)
        editor.set_weekly_achieved("2025", "Q1", 1, 1)
        period = editor.period("2025", "Q1")
        self.assertEqual(period.weekly_total_achieved, 5.5)
        self.assertEqual(period.weekly_total_achieved, sum(entry.achieved for entry in period.weeks))

    def test_commit_writes_one_entry_per_changed_period(self):
        goal = make_goal()
        editor = ProgressEditor(goal)
        editor.set_weekly_achieved("2025", "Q1", 1, 2)
        editor.set_weekly_achieved("2025", "Q1", 2, 3)
        editor.set_weekly_achieved("2025", "Q2", 5, 7)
        entries = editor.commit("42")

        self.assertEqual(len(entries), 2)
        goal.refresh_from_db()
        self.assertEqual(len(goal.history), 2)
        first = goal.history_entries()[0]
        self.assertEqual((first.user_id, first.quarter, first.old_value, first.new_value), ("42", "Q1", 0, 5))
        self.assertEqual(first.note, NOTE_WEEKLY_UPDATED)
        self.assertEqual(goal.periods()[1].weekly_total_achieved, 7)

    def test_commit_without_changes_is_a_no_op(self):
        goal = make_goal()
        before = goal.updated_at
        self.assertEqual(ProgressEditor(goal).commit("1"), [])
        goal.refresh_from_db()
        self.assertEqual(goal.history, [])
        self.assertEqual(goal.updated_at, before)

    def test_reverting_a_value_adds_no_history(self):
        goal = make_goal()
        editor = ProgressEditor(goal)
        editor.set_weekly_achieved("2025", "Q1", 1, 5)
        editor.set_weekly_achieved("2025", "Q1", 1, 0)
        self.assertEqual(editor.pending_changes("1"), [])
        editor.commit("1")
        goal.refresh_from_db()
        self.assertEqual(goal.history, [])

    def test_history_is_appended_across_commits(self):
        goal = make_goal()
        editor = ProgressEditor(goal)
        editor.set_weekly_achieved("2025", "Q1", 1, 1)
        editor.commit("1")
        editor.set_weekly_achieved("2025", "Q1", 1, 2)
        editor.commit("1")
        goal.refresh_from_db()
        self.assertEqual([entry.new_value for entry in goal.history_entries()], [1, 2])
        self.assertEqual(goal.history_entries()[1].old_value, 1)

    def test_direct_goal(self):
        goal = make_goal(
            tracking_method=TRACKING_DIRECT,
            progress=[{"year": "2025", "quarter": "Q1", "target": 10, "achieved": 1}],
        )
        editor = ProgressEditor(goal)
        editor.set_direct_achieved("2025", "Q1", 6)
        (entry,) = editor.commit("9")
        self.assertEqual((entry.old_value, entry.new_value, entry.note), (1, 6, NOTE_DIRECT_UPDATED))
        with self.assertRaises(ValidationError):
            editor.set_weekly_achieved("2025", "Q1", 1, 1)

    def test_weekly_goal_rejects_direct_values(self):
        with self.assertRaises(ValidationError):
            ProgressEditor(make_goal()).set_direct_achieved("2025", "Q1", 1)

    def test_invalid_values_are_rejected(self):
        editor = ProgressEditor(make_goal())
        for value in (-1, float("nan"), "abc"):
            with self.assertRaises(ValidationError):
                editor.set_weekly_achieved("2025", "Q1", 1, value)
        with self.assertRaises(ValidationError):
            editor.set_weekly_achieved("2025", "Q4", 1, 1)
        with self.assertRaises(ValidationError):
            editor.set_weekly_achieved("2025", "Q1", 14, 1)

    def test_legacy_period_without_weeks_gets_blank_weeks(self):
        goal = make_goal(progress=[{"year": "2025", "quarter": "Q1", "target": 10, "achieved": 4}])
        editor = ProgressEditor(goal)
        self.assertEqual(len(editor.period("2025", "Q1").weeks), 13)
        self.assertEqual(editor.pending_changes("1"), [])

    def test_failed_save_keeps_stored_progress(self):
        goal = make_goal()
        editor = ProgressEditor(goal)
        editor.set_weekly_achieved("2025", "Q1", 1, 3)
        with mock.patch.object(OperationalGoal, "save", side_effect=DatabaseError("disk full")):
            with self.assertRaises(PersistenceError):
                editor.commit("1")
        self.assertEqual(goal.history, [])
        self.assertEqual(goal.periods()[0].weekly_total_achieved, 0)
        goal.refresh_from_db()
        self.assertEqual(goal.history, [])


class TrackingViewTests(TestCase):
    def setUp(self):
        self.sales = Department.objects.create(name="Sales")
        self.other = Department.objects.create(name="Support")
        self.goal = make_goal(department=self.sales)

    def test_tracking_requires_login(self):
        response = self.client.get(reverse("tracking_index"))
        self.assertEqual(response.url, reverse("home"))

    def test_tracking_lists_goals_with_quarter_filter(self):
        sign_in_as(self.client, role=ROLE_USER)
        OperationalGoal.objects.create(goal="Audit", progress=[{"year": "2025", "quarter": "Q3", "target": 1}])
        response = self.client.get(reverse("tracking_index"), {"quarter": "Q1", "method": "all"})
        self.assertContains(response, "Calls made")
        self.assertNotContains(response, "Audit")

    def test_member_of_department_can_save_weeks(self):
        account = sign_in_as(self.client, role=ROLE_USER, departments=[self.sales])
        response = self.client.post(
            reverse("goal_detail", args=[self.goal.id]),
            {"week_2025_Q1_1": "4", "week_2025_Q1_2": "1"},
        )
        self.assertEqual(response.status_code, 302)
        self.goal.refresh_from_db()
        self.assertEqual(self.goal.periods()[0].weekly_total_achieved, 5)
        (entry,) = self.goal.history_entries()
        self.assertEqual(entry.user_id, str(account.id))

    def test_user_outside_department_cannot_save(self):
        sign_in_as(self.client, role=ROLE_USER, departments=[self.other])
        response = self.client.post(reverse("goal_detail", args=[self.goal.id]), {"week_2025_Q1_1": "4"})
        self.assertEqual(response.status_code, 403)
        self.goal.refresh_from_db()
        self.assertEqual(self.goal.history, [])

    def test_manager_can_save(self):
        sign_in_as(self.client, role=ROLE_MANAGER)
        self.client.post(reverse("goal_detail", args=[self.goal.id]), {"week_2025_Q2_13": "2"})
        self.goal.refresh_from_db()
        self.assertEqual(self.goal.periods()[1].weekly_total_achieved, 2)

    def test_invalid_value_shows_error(self):
        sign_in_as(self.client, role=ROLE_MANAGER)
        response = self.client.post(reverse("goal_detail", args=[self.goal.id]), {"week_2025_Q1_1": "-3"})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "zero or more")

    def test_detail_page_shows_absolute_week_labels(self):
        sign_in_as(self.client, role=ROLE_USER)
        response = self.client.get(reverse("goal_detail", args=[self.goal.id]))
        self.assertContains(response, "W14")
        self.assertNotContains(response, "Save</button>")
