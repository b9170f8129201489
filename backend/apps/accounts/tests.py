import json

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.test import Client, TestCase
from django.urls import reverse

from apps.accounts.auth import SessionContext, can_edit_goal, normalize_role
from apps.accounts.models import ROLE_MANAGER, ROLE_USER, Account, AccountDepartment, Department
from apps.accounts.services import create_account, create_department, delete_account, delete_department, update_account
from apps.common.errors import DuplicateNameError, ReferentialIntegrityError, ValidationError
from apps.goals.models import OperationalGoal


def make_account(*, email="manager@example.com", password="secret", role=ROLE_MANAGER, departments=()):
    account = Account.objects.create(
        name=email.split("@")[0],
        email=email,
        password=make_password(password),
        role=role,
    )
    for department in departments:
        AccountDepartment.objects.create(account=account, department=department)
    return account


def sign_in(client, account):
    session = client.session
    session["account_id"] = account.id
    session.save()


class LoginFlowTests(TestCase):
    def setUp(self):
        self.account = make_account()

    def test_login_redirects_dashboard(self):
        response = self.client.post(
            reverse("home"),
            {
                "email": "Manager@Example.com",
                "password": "secret",
            },
        )
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("dashboard_index"))
        self.assertEqual(self.client.session.get("account_id"), self.account.id)

    def test_wrong_password_shows_error(self):
        response = self.client.post(
            reverse("home"),
            {
                "email": "manager@example.com",
                "password": "wrong",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "The password is incorrect.")
        self.assertIsNone(self.client.session.get("account_id"))

    def test_unknown_email_shows_error(self):
        response = self.client.post(reverse("home"), {"email": "nobody@example.com", "password": "x"})
        self.assertContains(response, "No user exists with this email.")

    def test_signed_in_visitor_is_sent_to_dashboard(self):
        sign_in(self.client, self.account)
        response = self.client.get(reverse("home"))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("dashboard_index"))

    def test_logout_clears_session(self):
        sign_in(self.client, self.account)
        response = self.client.get(reverse("logout"))
        self.assertEqual(response.url, reverse("home"))
        self.assertIsNone(self.client.session.get("account_id"))


class AuthApiTests(TestCase):
    def setUp(self):
        self.department = Department.objects.create(name="Sales")
        self.account = make_account(email="user@example.com", role=ROLE_USER, departments=[self.department])

    def post_json(self, name, payload):
        return self.client.post(reverse(name), data=json.dumps(payload), content_type="application/json")

    def test_login_returns_profile(self):
        response = self.post_json("api_login", {"email": "user@example.com", "password": "secret"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["user"]["uid"], str(self.account.id))
        self.assertEqual(body["user"]["role"], ROLE_USER)
        self.assertEqual(body["user"]["departmentIds"], [str(self.department.id)])

    def test_login_missing_fields(self):
        response = self.post_json("api_login", {"email": "user@example.com"})
        self.assertEqual(response.status_code, 400)

    def test_login_bad_credentials(self):
        response = self.post_json("api_login", {"email": "user@example.com", "password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertIn("error", response.json())

    def test_session_cookie_is_http_only(self):
        self.post_json("api_login", {"email": "user@example.com", "password": "secret"})
        cookie = self.client.cookies[settings.SESSION_COOKIE_NAME]
        self.assertTrue(cookie["httponly"])

    def test_json_posts_need_the_csrf_token_from_the_user_endpoint(self):
        client = Client(enforce_csrf_checks=True)
        payload = json.dumps({"email": "user@example.com", "password": "secret"})
        response = client.post(reverse("api_login"), data=payload, content_type="application/json")
        self.assertEqual(response.status_code, 403)

        client.get(reverse("api_user"))
        token = client.cookies["csrftoken"].value
        response = client.post(
            reverse("api_login"), data=payload, content_type="application/json", HTTP_X_CSRFTOKEN=token
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["uid"], str(self.account.id))

        response = client.post(reverse("api_logout"), HTTP_X_CSRFTOKEN=client.cookies["csrftoken"].value)
        self.assertEqual(response.status_code, 200)

    def test_remember_me_extends_expiry(self):
        self.post_json("api_login", {"email": "user@example.com", "password": "secret", "rememberMe": True})
        self.assertEqual(self.client.session.get_expiry_age(), settings.KPI_REMEMBER_ME_SESSION_AGE)

    def test_default_expiry(self):
        self.post_json("api_login", {"email": "user@example.com", "password": "secret"})
        self.assertEqual(self.client.session.get_expiry_age(), settings.KPI_SESSION_AGE)

    def test_user_endpoint(self):
        self.assertIsNone(self.client.get(reverse("api_user")).json()["user"])
        sign_in(self.client, self.account)
        self.assertEqual(self.client.get(reverse("api_user")).json()["user"]["email"], "user@example.com")

    def test_logout_endpoint(self):
        sign_in(self.client, self.account)
        response = self.client.post(reverse("api_logout"))
        self.assertTrue(response.json()["success"])
        self.assertIsNone(self.client.get(reverse("api_user")).json()["user"])

    def test_deleted_account_session_is_anonymous(self):
        sign_in(self.client, self.account)
        self.account.delete()
        self.assertIsNone(self.client.get(reverse("api_user")).json()["user"])


class RoleGuardTests(TestCase):
    def test_dashboard_requires_login(self):
        response = self.client.get(reverse("dashboard_index"))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("home"))

    def test_settings_require_manager(self):
        sign_in(self.client, make_account(email="user@example.com", role=ROLE_USER))
        response = self.client.get(reverse("department_settings"))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("dashboard_index"))

    def test_legacy_arabic_manager_role(self):
        sign_in(self.client, make_account(role="مدير"))
        response = self.client.get(reverse("department_settings"))
        self.assertEqual(response.status_code, 200)

    def test_normalize_role(self):
        self.assertEqual(normalize_role("Manager"), ROLE_MANAGER)
        self.assertEqual(normalize_role("مستخدم"), ROLE_USER)
        self.assertEqual(normalize_role(None), ROLE_USER)

    def test_can_edit_goal(self):
        goal = OperationalGoal(goal="G", department_id=3)
        manager = SessionContext(uid="1", email="m@x", name="m", role=ROLE_MANAGER)
        member = SessionContext(uid="2", email="u@x", name="u", role=ROLE_USER, department_ids=[3])
        outsider = SessionContext(uid="3", email="o@x", name="o", role=ROLE_USER, department_ids=[4])
        self.assertTrue(can_edit_goal(manager, goal))
        self.assertTrue(can_edit_goal(member, goal))
        self.assertFalse(can_edit_goal(outsider, goal))
        self.assertFalse(can_edit_goal(None, goal))


class AccountServiceTests(TestCase):
    def setUp(self):
        self.department = Department.objects.create(name="Finance")

    def test_create_account_hashes_password_and_links_departments(self):
        account = create_account(
            name="New",
            email="NEW@example.com",
            password="pw",
            role=ROLE_USER,
            departments=[self.department],
        )
        self.assertEqual(account.email, "new@example.com")
        self.assertTrue(check_password("pw", account.password))
        self.assertEqual(list(account.departments.all()), [self.department])

    def test_duplicate_email_is_rejected(self):
        make_account(email="dup@example.com")
        with self.assertRaises(DuplicateNameError):
            create_account(name="x", email="Dup@example.com", password="pw", role=ROLE_USER)

    def test_update_keeps_password_when_blank(self):
        account = make_account(email="keep@example.com")
        update_account(account, name="Renamed", email="keep@example.com", role=ROLE_USER, password="")
        account.refresh_from_db()
        self.assertEqual(account.name, "Renamed")
        self.assertTrue(check_password("secret", account.password))

    def test_cannot_delete_own_account(self):
        account = make_account()
        with self.assertRaises(ValidationError):
            delete_account(account, acting=SessionContext.from_account(account))
        self.assertTrue(Account.objects.filter(id=account.id).exists())

    def test_department_names_are_unique_case_insensitively(self):
        with self.assertRaises(DuplicateNameError):
            create_department(name="finance")

    def test_delete_linked_department_is_blocked(self):
        make_account(departments=[self.department])
        with self.assertRaises(ReferentialIntegrityError):
            delete_department(self.department)
        self.assertTrue(Department.objects.filter(id=self.department.id).exists())
