"""Achievement percentages and status buckets.

Every page that shows progress (dashboard cards, the operational goal list,
the tracking table and the goal detail) goes through these functions.
"""

import math

from apps.common.documents import TRACKING_DIRECT, PeriodProgress, period_sort_key

PERCENTAGE_TYPE_NAMES = frozenset({"percentage", "نسبة مئوية"})
MAX_PERCENT = 500.0

STATUS_RED = "red"
STATUS_ORANGE = "orange"
STATUS_YELLOW = "yellow"
STATUS_GREEN = "green"


def effective_achieved(period: PeriodProgress, tracking_method: str | None) -> float:
    if tracking_method == TRACKING_DIRECT:
        return period.achieved or 0.0
    if period.weekly_total_achieved is not None:
        return period.weekly_total_achieved
    return period.achieved or 0.0


def _clamp(percent: float) -> float:
    if math.isnan(percent) or percent < 0:
        return 0.0
    return min(percent, MAX_PERCENT)


def calculate_percent(
    period: PeriodProgress,
    tracking_method: str | None,
    is_reverse: bool = False,
    value_type_name: str = "",
) -> float:
    """Return the achievement percent of one period, in [0, 500].

    ``is_reverse`` is accepted for symmetry with ``status_color`` but never
    changes the percent; reversal only applies to the status bucket.
    """
    achieved = effective_achieved(period, tracking_method)
    target = period.target

    if value_type_name in PERCENTAGE_TYPE_NAMES:
        percent = achieved / (target or 100.0) * 100
    elif target is not None and target > 0:
        percent = achieved / target * 100
    elif target == 0 and achieved >= 0:
        percent = 100.0
    else:
        percent = 0.0
    return _clamp(percent)


def status_color(percent: float, is_reverse: bool = False) -> str:
    effective = 100 - percent if is_reverse else percent
    if effective < 50:
        return STATUS_RED
    if effective <= 60:
        return STATUS_ORANGE
    if effective <= 79:
        return STATUS_YELLOW
    return STATUS_GREEN


progress_color = status_color


def period_percent(period: PeriodProgress, *, goal, value_type_names: dict[str, str]) -> float:
    return calculate_percent(
        period,
        goal.tracking_method,
        goal.is_reverse,
        period.type_name(value_type_names),
    )


def average_percent(periods, *, goal, value_type_names: dict[str, str], quarter: str | None = None) -> float:
    percents = [
        period_percent(period, goal=goal, value_type_names=value_type_names)
        for period in periods
        if not quarter or period.quarter == quarter
    ]
    if not percents:
        return 0.0
    return sum(percents) / len(percents)


def summarize_goal(goal, value_type_names: dict[str, str], quarter: str | None = None) -> dict:
    periods = sorted(goal.periods(), key=period_sort_key)
    rows = []
    for period in periods:
        if quarter and period.quarter != quarter:
            continue
        percent = period_percent(period, goal=goal, value_type_names=value_type_names)
        rows.append(
            {
                "year": period.year,
                "quarter": period.quarter,
                "target": period.target or 0,
                "achieved": effective_achieved(period, goal.tracking_method),
                "type_name": period.type_name(value_type_names),
                "percent": percent,
                "percent_text": f"{percent:.1f}%",
                "status": status_color(percent, goal.is_reverse),
            }
        )
    avg = average_percent(periods, goal=goal, value_type_names=value_type_names, quarter=quarter)
    return {
        "periods": rows,
        "avg_percent": avg,
        "avg_percent_text": f"{avg:.1f}%",
        "status": status_color(avg, goal.is_reverse),
    }


def goal_rows(goals, *, value_type_names: dict[str, str], department_names: dict[int, str], quarter: str | None = None):
    return [
        {
            "goal": goal,
            "department_name": department_names.get(goal.department_id, ""),
            **summarize_goal(goal, value_type_names, quarter=quarter or None),
        }
        for goal in goals
    ]
