from django.contrib.auth.hashers import check_password, make_password
from django.test import TestCase
from django.urls import reverse

from apps.accounts.models import ROLE_MANAGER, ROLE_USER, Account, AccountDepartment, Department
from apps.common.documents import TRACKING_DIRECT
from apps.goals.models import DISPLAY_OPERATIONAL, AchievementValueType, OperationalGoal, StrategicGoal


def sign_in_manager(client):
    account = Account.objects.create(
        name="Manager",
        email="manager@example.com",
        password=make_password("secret"),
        role=ROLE_MANAGER,
    )
    session = client.session
    session["account_id"] = account.id
    session.save()
    return account


class DashboardIndexTests(TestCase):
    def setUp(self):
        sign_in_manager(self.client)
        self.strategic_goal = StrategicGoal.objects.create(goal="Grow revenue", years=["2025"])

    def test_card_averages_general_goals(self):
        OperationalGoal.objects.create(
            goal="Upsell",
            strategic_goal=self.strategic_goal,
            tracking_method=TRACKING_DIRECT,
            progress=[{"year": "2025", "quarter": "Q1", "target": 10, "achieved": 5}],
        )
        OperationalGoal.objects.create(
            goal="Renewals",
            strategic_goal=self.strategic_goal,
            tracking_method=TRACKING_DIRECT,
            progress=[{"year": "2025", "quarter": "Q1", "target": 10, "achieved": 10}],
        )
        OperationalGoal.objects.create(
            goal="Internal only",
            strategic_goal=self.strategic_goal,
            display_options=[DISPLAY_OPERATIONAL],
        )
        response = self.client.get(reverse("dashboard_index"))
        self.assertEqual(response.status_code, 200)
        (card,) = response.context["cards"]
        self.assertEqual([row["goal"].goal for row in card["rows"]], ["Renewals", "Upsell"])
        self.assertEqual(card["avg_percent_text"], "75.0%")
        self.assertEqual(card["status"], "yellow")
        self.assertNotContains(response, "Internal only")

    def test_regular_user_sees_dashboard(self):
        self.client.logout()
        account = Account.objects.create(name="U", email="u@example.com", password="x", role=ROLE_USER)
        session = self.client.session
        session["account_id"] = account.id
        session.save()
        response = self.client.get(reverse("dashboard_index"))
        self.assertContains(response, "Grow revenue")


class DepartmentSettingsViewTests(TestCase):
    def setUp(self):
        sign_in_manager(self.client)

    def test_add_department(self):
        response = self.client.post(reverse("department_settings"), {"name": "Finance"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Department.objects.filter(name="Finance").exists())

    def test_duplicate_department_shows_error(self):
        Department.objects.create(name="Finance")
        response = self.client.post(reverse("department_settings"), {"name": "FINANCE"})
        self.assertContains(response, "already exists")
        self.assertEqual(Department.objects.count(), 1)

    def test_edit_department(self):
        department = Department.objects.create(name="Old")
        self.client.post(
            reverse("department_settings"),
            {"edit_department_id": str(department.id), "name": "New"},
        )
        department.refresh_from_db()
        self.assertEqual(department.name, "New")

    def test_delete_unused_department(self):
        department = Department.objects.create(name="Temp")
        response = self.client.post(reverse("department_delete", args=[department.id]))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(Department.objects.filter(id=department.id).exists())

    def test_delete_referenced_department_is_blocked(self):
        department = Department.objects.create(name="Sales")
        OperationalGoal.objects.create(goal="G", department=department)
        response = self.client.post(reverse("department_delete", args=[department.id]), follow=True)
        self.assertContains(response, "cannot be deleted")
        self.assertTrue(Department.objects.filter(id=department.id).exists())

    def test_get_does_not_delete(self):
        department = Department.objects.create(name="Temp")
        self.client.get(reverse("department_delete", args=[department.id]))
        self.assertTrue(Department.objects.filter(id=department.id).exists())


class AccountSettingsViewTests(TestCase):
    def setUp(self):
        self.manager = sign_in_manager(self.client)
        self.department = Department.objects.create(name="Sales")

    def test_register_account_with_departments(self):
        response = self.client.post(
            reverse("account_settings"),
            {
                "name": "Member",
                "email": "member@example.com",
                "password": "pw",
                "role": ROLE_USER,
                "departments": [self.department.id],
            },
        )
        self.assertEqual(response.status_code, 200)
        account = Account.objects.get(email="member@example.com")
        self.assertTrue(check_password("pw", account.password))
        self.assertEqual(
            set(account.department_links.values_list("department_id", flat=True)),
            {self.department.id},
        )

    def test_register_without_password_shows_error(self):
        response = self.client.post(
            reverse("account_settings"),
            {"name": "Member", "email": "member@example.com", "role": ROLE_USER},
        )
        self.assertContains(response, "Enter a password.")
        self.assertFalse(Account.objects.filter(email="member@example.com").exists())

    def test_edit_account_moves_departments(self):
        other = Department.objects.create(name="Support")
        account = Account.objects.create(name="M", email="m@example.com", password="x", role=ROLE_USER)
        AccountDepartment.objects.create(account=account, department=self.department)
        self.client.post(
            reverse("account_settings"),
            {
                "edit_account_id": str(account.id),
                "name": "M",
                "email": "m@example.com",
                "role": ROLE_USER,
                "departments": [other.id],
            },
        )
        self.assertEqual(list(account.departments.all()), [other])

    def test_delete_account(self):
        account = Account.objects.create(name="M", email="m@example.com", password="x", role=ROLE_USER)
        self.client.post(reverse("account_delete", args=[account.id]))
        self.assertFalse(Account.objects.filter(id=account.id).exists())

    def test_cannot_delete_self(self):
        response = self.client.post(reverse("account_delete", args=[self.manager.id]), follow=True)
        self.assertContains(response, "You cannot delete your own account.")
        self.assertTrue(Account.objects.filter(id=self.manager.id).exists())


class ValueTypeSettingsViewTests(TestCase):
    def setUp(self):
        sign_in_manager(self.client)

    def test_add_value_type(self):
        self.client.post(reverse("value_type_settings"), {"name": "percentage"})
        self.assertTrue(AchievementValueType.objects.filter(name="percentage").exists())

    def test_value_type_in_use_is_kept(self):
        value_type = AchievementValueType.objects.create(name="percentage")
        OperationalGoal.objects.create(
            goal="G",
            progress=[{"year": "2025", "quarter": "Q1", "target": 1, "achievedTypeId": str(value_type.id)}],
        )
        response = self.client.post(reverse("value_type_delete", args=[value_type.id]), follow=True)
        self.assertContains(response, "cannot be deleted")
        self.assertTrue(AchievementValueType.objects.filter(id=value_type.id).exists())

    def test_delete_unused_value_type(self):
        value_type = AchievementValueType.objects.create(name="count")
        self.client.post(reverse("value_type_delete", args=[value_type.id]))
        self.assertFalse(AchievementValueType.objects.filter(id=value_type.id).exists())
