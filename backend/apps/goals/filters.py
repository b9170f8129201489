from apps.common.documents import QUARTERS, TRACKING_WEEKLY, WEEKS_PER_QUARTER, absolute_week

ALL = "all"


def _selected(value: str | None) -> str:
    value = (value or "").strip()
    return "" if value == ALL else value


def matches_search(goal, term: str, department_names: dict[int, str]) -> bool:
    if not term:
        return True
    haystack = " ".join(
        [
            goal.goal or "",
            goal.strategic_goal_text or "",
            goal.indicator or "",
            department_names.get(goal.department_id, ""),
        ]
    )
    return term.lower() in haystack.lower()


def matches_week(goal, *, week: int, quarter: str) -> bool:
    if (goal.tracking_method or TRACKING_WEEKLY) != TRACKING_WEEKLY:
        return False
    for period in goal.periods():
        if quarter and period.quarter != quarter:
            continue
        for entry in period.weeks:
            number = entry.week if quarter else absolute_week(period.quarter, entry.week)
            if number == week:
                return True
    return False


def filter_goals(
    goals,
    *,
    department_names: dict[int, str],
    search: str = "",
    department_id: str = "",
    quarter: str = "",
    method: str = "",
    week: str = "",
):
    search = (search or "").strip()
    department_id = _selected(department_id)
    quarter = _selected(quarter)
    method = _selected(method)
    week = _selected(week)

    filtered = []
    for goal in goals:
        if not matches_search(goal, search, department_names):
            continue
        if department_id and str(goal.department_id) != department_id:
            continue
        if quarter and not any(period.quarter == quarter for period in goal.periods()):
            continue
        if method and (goal.tracking_method or TRACKING_WEEKLY) != method:
            continue
        if week and method == TRACKING_WEEKLY and week.isdigit():
            if not matches_week(goal, week=int(week), quarter=quarter):
                continue
        filtered.append(goal)
    return filtered


def week_options(*, quarter: str, method: str) -> list[dict]:
    if _selected(method) != TRACKING_WEEKLY:
        return []
    options = [{"value": ALL, "label": "All weeks"}]
    if _selected(quarter) in QUARTERS:
        options += [{"value": str(i), "label": f"Week {i} of quarter"} for i in range(1, WEEKS_PER_QUARTER + 1)]
    else:
        options += [
            {"value": str(i), "label": f"Week {i}"} for i in range(1, WEEKS_PER_QUARTER * len(QUARTERS) + 1)
        ]
    return options
