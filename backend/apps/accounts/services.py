import logging

from django.contrib.auth.hashers import make_password

from apps.common.errors import DuplicateNameError, ValidationError
from apps.common.integrity import ensure_deletable
from apps.common.store import persist

from .auth import SessionContext, normalize_role
from .models import Account, AccountDepartment, Department

logger = logging.getLogger(__name__)


def _clean_name(name: str | None, *, label: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"Enter the {label}.")
    return cleaned


def _ensure_unique_department_name(name: str, *, exclude_id: int | None = None) -> None:
    query = Department.objects.filter(name__iexact=name)
    if exclude_id is not None:
        query = query.exclude(id=exclude_id)
    if query.exists():
        raise DuplicateNameError("A department with this name already exists.")


def create_department(*, name: str) -> Department:
    name = _clean_name(name, label="department name")
    _ensure_unique_department_name(name)
    with persist("create department"):
        department = Department.objects.create(name=name)
    logger.info("Created department %s", department.id)
    return department


def update_department(department: Department, *, name: str) -> Department:
    name = _clean_name(name, label="department name")
    _ensure_unique_department_name(name, exclude_id=department.id)
    with persist("update department"):
        department.name = name
        department.save(update_fields=["name", "updated_at"])
    logger.info("Updated department %s", department.id)
    return department


def delete_department(department: Department) -> None:
    ensure_deletable(department)
    department_id = department.id
    with persist("delete department"):
        department.delete()
    logger.info("Deleted department %s", department_id)


def _ensure_unique_email(email: str, *, exclude_id: int | None = None) -> None:
    query = Account.objects.filter(email=email)
    if exclude_id is not None:
        query = query.exclude(id=exclude_id)
    if query.exists():
        raise DuplicateNameError("This email is already registered.")


def _sync_departments(account: Account, departments) -> None:
    department_ids = {department.id for department in departments}
    AccountDepartment.objects.filter(account=account).exclude(department_id__in=department_ids).delete()
    existing = set(AccountDepartment.objects.filter(account=account).values_list("department_id", flat=True))
    for department_id in sorted(department_ids - existing):
        AccountDepartment.objects.create(account=account, department_id=department_id)


def create_account(*, name: str, email: str, password: str, role: str, departments=()) -> Account:
    name = _clean_name(name, label="user name")
    email = _clean_name(email, label="email").lower()
    if not password:
        raise ValidationError("Enter a password.")
    _ensure_unique_email(email)
    with persist("create user"):
        account = Account.objects.create(
            name=name,
            email=email,
            password=make_password(password),
            role=normalize_role(role),
        )
        _sync_departments(account, departments)
    logger.info("Created account %s", account.id)
    return account


def update_account(
    account: Account,
    *,
    name: str,
    email: str,
    role: str,
    departments=(),
    password: str = "",
) -> Account:
    name = _clean_name(name, label="user name")
    email = _clean_name(email, label="email").lower()
    _ensure_unique_email(email, exclude_id=account.id)
    with persist("update user"):
        account.name = name
        account.email = email
        account.role = normalize_role(role)
        update_fields = ["name", "email", "role", "updated_at"]
        if password:
            account.password = make_password(password)
            update_fields.append("password")
        account.save(update_fields=update_fields)
        _sync_departments(account, departments)
    logger.info("Updated account %s", account.id)
    return account


def delete_account(account: Account, *, acting: SessionContext | None) -> None:
    if acting is not None and (acting.uid == str(account.id) or acting.email == account.email):
        raise ValidationError("You cannot delete your own account.")
    account_id = account.id
    with persist("delete user"):
        account.delete()
    logger.info("Deleted account %s", account_id)


def department_name_map() -> dict[int, str]:
    return dict(Department.objects.values_list("id", "name"))
