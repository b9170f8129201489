import logging
from dataclasses import dataclass, field
from functools import wraps

from django.contrib.auth.hashers import check_password
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect

from apps.common.errors import ValidationError

from .models import ROLE_MANAGER, ROLE_USER, Account

logger = logging.getLogger(__name__)

SESSION_ACCOUNT_KEY = "account_id"
LEGACY_ROLE_ALIASES = {
    "مدير": ROLE_MANAGER,
    "مستخدم": ROLE_USER,
}


def normalize_role(role: str | None) -> str:
    value = (role or "").strip()
    value = LEGACY_ROLE_ALIASES.get(value, value.lower())
    return value if value in {ROLE_MANAGER, ROLE_USER} else ROLE_USER


@dataclass(frozen=True)
class SessionContext:
    uid: str
    email: str
    name: str
    role: str
    department_ids: list[int] = field(default_factory=list)

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    @classmethod
    def from_account(cls, account: Account) -> "SessionContext":
        return cls(
            uid=str(account.id),
            email=account.email,
            name=account.name,
            role=normalize_role(account.role),
            department_ids=sorted(account.department_links.values_list("department_id", flat=True)),
        )

    def as_profile(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "departmentIds": [str(department_id) for department_id in self.department_ids],
        }


def resolve_session_context(request: HttpRequest) -> SessionContext | None:
    account_id = request.session.get(SESSION_ACCOUNT_KEY)
    if not account_id:
        return None
    account = Account.objects.filter(id=account_id).first()
    if account is None:
        request.session.pop(SESSION_ACCOUNT_KEY, None)
        return None
    return SessionContext.from_account(account)


def get_current_user_profile(request: HttpRequest) -> SessionContext | None:
    return getattr(request, "session_context", None)


def can_edit_goal(context: SessionContext | None, goal) -> bool:
    if context is None:
        return False
    if context.is_manager:
        return True
    return goal.department_id is not None and goal.department_id in context.department_ids


def authenticate_account(email: str, password: str) -> Account:
    if not email or not password:
        raise ValidationError("Enter both email and password.")
    email = email.strip().lower()
    account = Account.objects.filter(email=email).first()
    if account is None:
        logger.warning("Login failed: unknown email %s", email)
        raise ValidationError("No user exists with this email.")
    if not check_password(password, account.password):
        logger.warning("Login failed: wrong password for %s", email)
        raise ValidationError("The password is incorrect.")
    logger.info("Account %s signed in", account.id)
    return account


def require_login(view_func):
    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if get_current_user_profile(request) is None:
            return redirect("home")
        return view_func(request, *args, **kwargs)

    return wrapper


def require_roles(*allowed_roles: str):
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            context = get_current_user_profile(request)
            if context is None:
                return redirect("home")
            if context.role not in allowed_roles:
                return redirect("dashboard_index")
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator
