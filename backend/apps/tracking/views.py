import logging

from django.http import HttpRequest, HttpResponse, HttpResponseForbidden
from django.shortcuts import get_object_or_404, redirect, render

from apps.accounts.auth import can_edit_goal, get_current_user_profile, require_login
from apps.accounts.models import Department
from apps.accounts.services import department_name_map
from apps.common.achievement import goal_rows, summarize_goal
from apps.common.documents import (
    QUARTERS,
    TRACKING_DIRECT,
    TRACKING_METHOD_CHOICES,
    TRACKING_WEEKLY,
    parse_number,
    period_sort_key,
    week_offset,
)
from apps.common.errors import KpiError, ValidationError
from apps.common.store import load_or_error
from apps.goals.filters import filter_goals, week_options
from apps.goals.models import OperationalGoal
from apps.goals.services import value_type_names

from .editor import ProgressEditor

logger = logging.getLogger(__name__)


def _tracking_filters(request: HttpRequest) -> dict:
    filters = {
        "search": request.GET.get("search", ""),
        "department_id": request.GET.get("department", ""),
        "quarter": request.GET.get("quarter", ""),
        "method": request.GET.get("method", ""),
        "week": request.GET.get("week", ""),
    }
    if filters["method"] not in {"", "all", TRACKING_WEEKLY}:
        filters["week"] = ""
    return filters


@require_login
def tracking_index(request: HttpRequest) -> HttpResponse:
    filters = _tracking_filters(request)

    def load():
        department_names = department_name_map()
        goals = filter_goals(
            OperationalGoal.objects.select_related("department"),
            department_names=department_names,
            **filters,
        )
        quarter = filters["quarter"] if filters["quarter"] in QUARTERS else None
        return goal_rows(
            goals,
            value_type_names=value_type_names(),
            department_names=department_names,
            quarter=quarter,
        )

    rows, load_error = load_or_error(load, what="operational goals")
    return render(
        request,
        "tracking/index.html",
        {
            "rows": rows,
            "load_error": load_error,
            "filters": filters,
            "departments": Department.objects.all(),
            "quarters": QUARTERS,
            "methods": TRACKING_METHOD_CHOICES,
            "week_options": week_options(quarter=filters["quarter"], method=filters["method"]),
        },
    )


def week_field_name(period, week: int) -> str:
    return f"week_{period.year}_{period.quarter}_{week}"


def direct_field_name(period) -> str:
    return f"direct_{period.year}_{period.quarter}"


def _posted_value(post_data, name: str) -> float | None:
    if name not in post_data:
        return None
    raw = post_data.get(name, "").strip()
    if not raw:
        return 0.0
    value = parse_number(raw)
    if value is None:
        raise ValidationError("Enter numbers only.")
    return value


def apply_posted_progress(editor: ProgressEditor, post_data) -> None:
    for period in editor.periods:
        if editor.tracking_method == TRACKING_DIRECT:
            value = _posted_value(post_data, direct_field_name(period))
            if value is not None and value != (period.achieved or 0.0):
                editor.set_direct_achieved(period.year, period.quarter, value)
            continue
        for entry in period.weeks:
            value = _posted_value(post_data, week_field_name(period, entry.week))
            if value is not None and value != entry.achieved:
                editor.set_weekly_achieved(period.year, period.quarter, entry.week, value)


def _period_panels(editor: ProgressEditor, summary: dict) -> list[dict]:
    summaries = {(row["year"], row["quarter"]): row for row in summary["periods"]}
    panels = []
    for period in sorted(editor.periods, key=period_sort_key):
        offset = week_offset(period.quarter)
        panels.append(
            {
                **summaries.get(period.key, {}),
                "year": period.year,
                "quarter": period.quarter,
                "direct_field": direct_field_name(period),
                "direct_value": period.achieved or 0,
                "weeks": [
                    {
                        "label": entry.week + offset,
                        "field": week_field_name(period, entry.week),
                        "value": entry.achieved,
                    }
                    for entry in period.weeks
                ],
            }
        )
    return panels


def _history_sort_key(entry) -> str:
    return entry.changed_at.isoformat() if entry.changed_at else ""


@require_login
def goal_detail(request: HttpRequest, goal_id: int) -> HttpResponse:
    goal = get_object_or_404(OperationalGoal.objects.select_related("department"), id=goal_id)
    context = get_current_user_profile(request)
    editable = can_edit_goal(context, goal)
    form_error = None
    status_message = None
    editor = ProgressEditor(goal)

    if request.method == "POST":
        if not editable:
            logger.warning("User %s tried to edit goal %s without permission", context.uid, goal.id)
            return HttpResponseForbidden("You cannot edit this goal.")
        try:
            apply_posted_progress(editor, request.POST)
            entries = editor.commit(context.uid)
        except KpiError as exc:
            form_error = str(exc)
        else:
            if entries:
                return redirect(f"{request.path}?saved=1")
            status_message = "No changes to save."

    summary = summarize_goal(goal, value_type_names())
    return render(
        request,
        "tracking/goal_detail.html",
        {
            "goal": goal,
            "editable": editable,
            "summary": summary,
            "panels": _period_panels(editor, summary),
            "is_weekly": editor.tracking_method == TRACKING_WEEKLY,
            "history": sorted(goal.history_entries(), key=_history_sort_key, reverse=True),
            "form_error": form_error,
            "status_message": status_message or ("Changes saved." if request.GET.get("saved") == "1" else None),
        },
    )
