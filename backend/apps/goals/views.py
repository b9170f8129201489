from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render

from apps.accounts.auth import get_current_user_profile, require_login, require_roles
from apps.accounts.models import ROLE_MANAGER, Department
from apps.accounts.services import department_name_map
from apps.common.achievement import goal_rows
from apps.common.documents import QUARTERS, TRACKING_DIRECT
from apps.common.errors import KpiError
from apps.common.store import load_or_error

from .filters import filter_goals
from .forms import OperationalGoalForm, StrategicGoalForm
from .models import DISPLAY_GENERAL, DISPLAY_OPERATIONAL, AchievementValueType, OperationalGoal, StrategicGoal
from .services import (
    create_operational_goal,
    create_strategic_goal,
    delete_operational_goal,
    delete_strategic_goal,
    update_operational_goal,
    update_strategic_goal,
    value_type_names,
)


def _strategic_goal_form(*, data=None, initial=None, edit_goal=None) -> StrategicGoalForm:
    extra_years = edit_goal.years if edit_goal else ()
    return StrategicGoalForm(data=data, initial=initial, extra_years=extra_years)


def _strategic_goal_rows():
    goals = StrategicGoal.objects.prefetch_related("operational_goals")
    return [
        {
            "id": goal.id,
            "goal": goal.goal,
            "years_label": goal.years_label,
            "operational_count": len(goal.operational_goals.all()),
        }
        for goal in goals
    ]


@require_roles(ROLE_MANAGER)
def strategic_goal_settings(request: HttpRequest) -> HttpResponse:
    status_message = None
    form_error = None
    edit_goal = None

    edit_id = request.GET.get("edit")
    if edit_id and edit_id.isdigit():
        edit_goal = StrategicGoal.objects.filter(id=int(edit_id)).first()

    form = _strategic_goal_form(
        initial={"goal": edit_goal.goal, "years": edit_goal.years} if edit_goal else None,
        edit_goal=edit_goal,
    )

    if request.method == "POST":
        edit_goal_id = request.POST.get("edit_goal_id")
        if edit_goal_id and edit_goal_id.isdigit():
            edit_goal = get_object_or_404(StrategicGoal, id=int(edit_goal_id))
        form = _strategic_goal_form(data=request.POST, edit_goal=edit_goal)
        if form.is_valid():
            try:
                if edit_goal:
                    saved = update_strategic_goal(
                        edit_goal,
                        goal=form.cleaned_data["goal"],
                        years=form.cleaned_data["years"],
                    )
                    status_message = f"Updated strategic goal: {saved.goal}"
                else:
                    saved = create_strategic_goal(
                        goal=form.cleaned_data["goal"],
                        years=form.cleaned_data["years"],
                    )
                    status_message = f"Added strategic goal: {saved.goal}"
            except KpiError as exc:
                form_error = str(exc)
            else:
                edit_goal = None
                form = _strategic_goal_form()

    rows, load_error = load_or_error(_strategic_goal_rows, what="strategic goals")
    return render(
        request,
        "goals/strategic_goals.html",
        {
            "form": form,
            "rows": rows,
            "edit_goal": edit_goal,
            "status_message": status_message,
            "form_error": form_error,
            "load_error": load_error,
        },
    )


@require_roles(ROLE_MANAGER)
def strategic_goal_delete(request: HttpRequest, goal_id: int) -> HttpResponse:
    if request.method != "POST":
        return redirect("strategic_goal_settings")

    strategic_goal = get_object_or_404(StrategicGoal, id=goal_id)
    try:
        delete_strategic_goal(strategic_goal)
    except KpiError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "The strategic goal was deleted.")
    return redirect("strategic_goal_settings")


@require_login
def operational_goal_list(request: HttpRequest) -> HttpResponse:
    search = request.GET.get("search", "")
    department_id = request.GET.get("department", "")

    def load():
        goals = [
            goal
            for goal in OperationalGoal.objects.select_related("department", "strategic_goal")
            if goal.shows_on(DISPLAY_OPERATIONAL)
        ]
        department_names = department_name_map()
        filtered = filter_goals(
            goals,
            department_names=department_names,
            search=search,
            department_id=department_id,
        )
        return goal_rows(filtered, value_type_names=value_type_names(), department_names=department_names)

    cards, load_error = load_or_error(load, what="operational goals")
    context = get_current_user_profile(request)
    return render(
        request,
        "goals/operational_goals.html",
        {
            "cards": cards,
            "load_error": load_error,
            "departments": Department.objects.all(),
            "search": search,
            "selected_department": department_id,
            "is_manager": context.is_manager,
        },
    )


def _periods_from_post(post_data) -> list[dict]:
    years = post_data.getlist("period_year")
    quarters = post_data.getlist("period_quarter")
    targets = post_data.getlist("period_target")
    achieved = post_data.getlist("period_achieved")
    type_ids = post_data.getlist("period_type")
    rows = []
    for index, year in enumerate(years):
        target = targets[index] if index < len(targets) else ""
        if not year.strip() and not target.strip():
            continue
        rows.append(
            {
                "year": year,
                "quarter": quarters[index] if index < len(quarters) else "",
                "target": target,
                "achieved": achieved[index] if index < len(achieved) else "",
                "achieved_type_id": type_ids[index] if index < len(type_ids) else "",
            }
        )
    return rows


def _goal_data(form: OperationalGoalForm, periods) -> dict:
    data = dict(form.cleaned_data)
    display_options = []
    if data.pop("display_on_general"):
        display_options.append(DISPLAY_GENERAL)
    if data.pop("display_on_operational"):
        display_options.append(DISPLAY_OPERATIONAL)
    data["display_options"] = display_options
    data["weight"] = str(data["weight"]) if data["weight"] is not None else ""
    data["periods"] = periods
    return data


def _goal_initial(goal: OperationalGoal) -> dict:
    return {
        "strategic_goal": goal.strategic_goal_id,
        "department": goal.department_id,
        "goal": goal.goal,
        "indicator": goal.indicator,
        "tracking_method": goal.tracking_method,
        "weight": goal.weight,
        "exclude_from_calculation": goal.exclude_from_calculation,
        "is_reverse": goal.is_reverse,
        "calculation_method": goal.calculation_method,
        "display_on_general": goal.shows_on(DISPLAY_GENERAL),
        "display_on_operational": goal.shows_on(DISPLAY_OPERATIONAL),
        "icon": goal.icon,
    }


def _period_rows_from_goal(goal: OperationalGoal) -> list[dict]:
    return [
        {
            "year": period.year,
            "quarter": period.quarter,
            "target": period.target if period.target is not None else 0,
            "achieved": period.achieved or 0,
            "achieved_type_id": period.achieved_type_id,
        }
        for period in goal.periods()
    ]


def _render_goal_form(request: HttpRequest, *, goal: OperationalGoal | None) -> HttpResponse:
    form_error = None
    if request.method == "POST":
        form = OperationalGoalForm(data=request.POST)
        periods = _periods_from_post(request.POST)
        if form.is_valid():
            data = _goal_data(form, periods)
            try:
                if goal:
                    update_operational_goal(
                        goal, data=data, acting_user_id=get_current_user_profile(request).uid
                    )
                    messages.success(request, "The operational goal was updated.")
                else:
                    create_operational_goal(data=data)
                    messages.success(request, "The operational goal was added.")
            except KpiError as exc:
                form_error = str(exc)
            else:
                return redirect("operational_goal_list")
    elif goal:
        form = OperationalGoalForm(initial=_goal_initial(goal))
        periods = _period_rows_from_goal(goal)
    else:
        form = OperationalGoalForm()
        periods = []

    return render(
        request,
        "goals/operational_goal_form.html",
        {
            "form": form,
            "goal": goal,
            "periods": periods,
            "form_error": form_error,
            "quarters": QUARTERS,
            "value_types": AchievementValueType.objects.all(),
            "direct_method": TRACKING_DIRECT,
        },
    )


@require_roles(ROLE_MANAGER)
def operational_goal_create(request: HttpRequest) -> HttpResponse:
    return _render_goal_form(request, goal=None)


@require_roles(ROLE_MANAGER)
def operational_goal_edit(request: HttpRequest, goal_id: int) -> HttpResponse:
    goal = get_object_or_404(OperationalGoal, id=goal_id)
    return _render_goal_form(request, goal=goal)


@require_roles(ROLE_MANAGER)
def operational_goal_delete(request: HttpRequest, goal_id: int) -> HttpResponse:
    if request.method != "POST":
        return redirect("operational_goal_list")

    goal = get_object_or_404(OperationalGoal, id=goal_id)
    try:
        delete_operational_goal(goal)
    except KpiError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "The operational goal was deleted.")
    return redirect("operational_goal_list")
