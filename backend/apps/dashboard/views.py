from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render

from apps.accounts.auth import get_current_user_profile, normalize_role, require_login, require_roles
from apps.accounts.models import ROLE_MANAGER, Account, Department
from apps.accounts.services import (
    create_account,
    create_department,
    delete_account,
    delete_department,
    department_name_map,
    update_account,
    update_department,
)
from apps.common.achievement import goal_rows, status_color
from apps.common.errors import KpiError
from apps.common.integrity import can_delete
from apps.common.store import load_or_error
from apps.goals.models import DISPLAY_GENERAL, AchievementValueType, OperationalGoal, StrategicGoal
from apps.goals.services import create_value_type, delete_value_type, update_value_type, value_type_names

from .forms import AccountForm, DepartmentForm, ValueTypeForm


def _strategic_goal_cards():
    department_names = department_name_map()
    type_names = value_type_names()
    goals_by_strategic_id = {}
    for goal in OperationalGoal.objects.filter(strategic_goal__isnull=False):
        if goal.shows_on(DISPLAY_GENERAL):
            goals_by_strategic_id.setdefault(goal.strategic_goal_id, []).append(goal)

    cards = []
    for strategic_goal in StrategicGoal.objects.all():
        rows = goal_rows(
            goals_by_strategic_id.get(strategic_goal.id, []),
            value_type_names=type_names,
            department_names=department_names,
        )
        avg = sum(row["avg_percent"] for row in rows) / len(rows) if rows else 0.0
        cards.append(
            {
                "strategic_goal": strategic_goal,
                "rows": rows,
                "avg_percent": avg,
                "avg_percent_text": f"{avg:.1f}%",
                "status": status_color(avg),
            }
        )
    return cards


@require_login
def dashboard_index(request: HttpRequest) -> HttpResponse:
    cards, load_error = load_or_error(_strategic_goal_cards, what="strategic goals")
    return render(
        request,
        "dashboard/index.html",
        {
            "cards": cards,
            "load_error": load_error,
        },
    )


def _department_rows():
    return [
        {
            "id": department.id,
            "name": department.name,
            "can_delete": can_delete(department),
        }
        for department in Department.objects.all()
    ]


@require_roles(ROLE_MANAGER)
def department_settings(request: HttpRequest) -> HttpResponse:
    status_message = None
    form_error = None
    edit_department = None

    edit_id = request.GET.get("edit")
    if edit_id and edit_id.isdigit():
        edit_department = Department.objects.filter(id=int(edit_id)).first()

    form = DepartmentForm(initial={"name": edit_department.name} if edit_department else None)

    if request.method == "POST":
        edit_department_id = request.POST.get("edit_department_id")
        if edit_department_id and edit_department_id.isdigit():
            edit_department = get_object_or_404(Department, id=int(edit_department_id))
        form = DepartmentForm(data=request.POST)
        if form.is_valid():
            try:
                if edit_department:
                    department = update_department(edit_department, name=form.cleaned_data["name"])
                    status_message = f"Updated department: {department.name}"
                else:
                    department = create_department(name=form.cleaned_data["name"])
                    status_message = f"Added department: {department.name}"
            except KpiError as exc:
                form_error = str(exc)
            else:
                edit_department = None
                form = DepartmentForm()

    rows, load_error = load_or_error(_department_rows, what="departments")
    return render(
        request,
        "dashboard/department_settings.html",
        {
            "form": form,
            "rows": rows,
            "edit_department": edit_department,
            "status_message": status_message,
            "form_error": form_error,
            "load_error": load_error,
        },
    )


@require_roles(ROLE_MANAGER)
def department_delete(request: HttpRequest, department_id: int) -> HttpResponse:
    if request.method != "POST":
        return redirect("department_settings")

    department = get_object_or_404(Department, id=department_id)
    try:
        delete_department(department)
    except KpiError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "The department was deleted.")
    return redirect("department_settings")


def _account_form(*, data=None, initial=None) -> AccountForm:
    form = AccountForm(data=data, initial=initial)
    form.fields["departments"].queryset = Department.objects.all()
    return form


def _account_rows():
    accounts = Account.objects.prefetch_related("departments")
    return [
        {
            "id": account.id,
            "name": account.name,
            "email": account.email,
            "role": normalize_role(account.role),
            "department_names": ", ".join(department.name for department in account.departments.all()),
        }
        for account in accounts
    ]


@require_roles(ROLE_MANAGER)
def account_settings(request: HttpRequest) -> HttpResponse:
    status_message = None
    form_error = None
    edit_account = None

    edit_id = request.GET.get("edit")
    if edit_id and edit_id.isdigit():
        edit_account = Account.objects.filter(id=int(edit_id)).first()

    form = _account_form(
        initial={
            "name": edit_account.name,
            "email": edit_account.email,
            "role": normalize_role(edit_account.role),
            "departments": list(edit_account.departments.values_list("id", flat=True)),
        }
        if edit_account
        else None
    )

    if request.method == "POST":
        edit_account_id = request.POST.get("edit_account_id")
        if edit_account_id and edit_account_id.isdigit():
            edit_account = get_object_or_404(Account, id=int(edit_account_id))
        form = _account_form(data=request.POST)
        if form.is_valid():
            fields = {
                "name": form.cleaned_data["name"],
                "email": form.cleaned_data["email"],
                "password": form.cleaned_data["password"],
                "role": form.cleaned_data["role"],
                "departments": form.cleaned_data["departments"],
            }
            try:
                if edit_account:
                    account = update_account(edit_account, **fields)
                    status_message = f"Updated user: {account.name}"
                else:
                    account = create_account(**fields)
                    status_message = f"Added user: {account.name}"
            except KpiError as exc:
                form_error = str(exc)
            else:
                edit_account = None
                form = _account_form()

    rows, load_error = load_or_error(_account_rows, what="users")
    return render(
        request,
        "dashboard/account_settings.html",
        {
            "form": form,
            "rows": rows,
            "edit_account": edit_account,
            "status_message": status_message,
            "form_error": form_error,
            "load_error": load_error,
        },
    )


@require_roles(ROLE_MANAGER)
def account_delete(request: HttpRequest, account_id: int) -> HttpResponse:
    if request.method != "POST":
        return redirect("account_settings")

    account = get_object_or_404(Account, id=account_id)
    try:
        delete_account(account, acting=get_current_user_profile(request))
    except KpiError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "The user was deleted.")
    return redirect("account_settings")


def _value_type_rows():
    return [
        {
            "id": value_type.id,
            "name": value_type.name,
            "can_delete": can_delete(value_type),
        }
        for value_type in AchievementValueType.objects.all()
    ]


@require_roles(ROLE_MANAGER)
def value_type_settings(request: HttpRequest) -> HttpResponse:
    status_message = None
    form_error = None
    edit_value_type = None

    edit_id = request.GET.get("edit")
    if edit_id and edit_id.isdigit():
        edit_value_type = AchievementValueType.objects.filter(id=int(edit_id)).first()

    form = ValueTypeForm(initial={"name": edit_value_type.name} if edit_value_type else None)

    if request.method == "POST":
        edit_value_type_id = request.POST.get("edit_value_type_id")
        if edit_value_type_id and edit_value_type_id.isdigit():
            edit_value_type = get_object_or_404(AchievementValueType, id=int(edit_value_type_id))
        form = ValueTypeForm(data=request.POST)
        if form.is_valid():
            try:
                if edit_value_type:
                    value_type = update_value_type(edit_value_type, name=form.cleaned_data["name"])
                    status_message = f"Updated value type: {value_type.name}"
                else:
                    value_type = create_value_type(name=form.cleaned_data["name"])
                    status_message = f"Added value type: {value_type.name}"
            except KpiError as exc:
                form_error = str(exc)
            else:
                edit_value_type = None
                form = ValueTypeForm()

    rows, load_error = load_or_error(_value_type_rows, what="value types")
    return render(
        request,
        "dashboard/value_type_settings.html",
        {
            "form": form,
            "rows": rows,
            "edit_value_type": edit_value_type,
            "status_message": status_message,
            "form_error": form_error,
            "load_error": load_error,
        },
    )


@require_roles(ROLE_MANAGER)
def value_type_delete(request: HttpRequest, value_type_id: int) -> HttpResponse:
    if request.method != "POST":
        return redirect("value_type_settings")

    value_type = get_object_or_404(AchievementValueType, id=value_type_id)
    try:
        delete_value_type(value_type)
    except KpiError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "The value type was deleted.")
    return redirect("value_type_settings")
