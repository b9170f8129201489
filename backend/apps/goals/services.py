import logging
import re

from apps.common.documents import (
    QUARTERS,
    TRACKING_DIRECT,
    TRACKING_METHOD_CHOICES,
    TRACKING_WEEKLY,
    PeriodProgress,
    blank_weeks,
    dump_periods,
    parse_number,
)
from apps.common.errors import DuplicateNameError, ValidationError
from apps.common.integrity import ensure_deletable
from apps.common.store import persist
from apps.tracking.editor import ProgressEditor

from .models import (
    DEFAULT_ICON,
    DISPLAY_OPTION_CHOICES,
    AchievementValueType,
    OperationalGoal,
    StrategicGoal,
)

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"^\d{4}$")
TRACKING_METHODS = {value for value, _ in TRACKING_METHOD_CHOICES}
DISPLAY_OPTIONS = {value for value, _ in DISPLAY_OPTION_CHOICES}


def value_type_names() -> dict[str, str]:
    return {str(type_id): name for type_id, name in AchievementValueType.objects.values_list("id", "name")}


def _ensure_unique_value_type_name(name: str, *, exclude_id: int | None = None) -> None:
    query = AchievementValueType.objects.filter(name__iexact=name)
    if exclude_id is not None:
        query = query.exclude(id=exclude_id)
    if query.exists():
        raise DuplicateNameError("A value type with this name already exists.")


def _required_text(value: str | None, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(message)
    return cleaned


def create_value_type(*, name: str) -> AchievementValueType:
    name = _required_text(name, "Enter the value type name.")
    _ensure_unique_value_type_name(name)
    with persist("create value type"):
        value_type = AchievementValueType.objects.create(name=name)
    logger.info("Created value type %s", value_type.id)
    return value_type


def update_value_type(value_type: AchievementValueType, *, name: str) -> AchievementValueType:
    name = _required_text(name, "Enter the value type name.")
    _ensure_unique_value_type_name(name, exclude_id=value_type.id)
    with persist("update value type"):
        value_type.name = name
        value_type.save(update_fields=["name", "updated_at"])
    logger.info("Updated value type %s", value_type.id)
    return value_type


def delete_value_type(value_type: AchievementValueType) -> None:
    ensure_deletable(value_type)
    value_type_id = value_type.id
    with persist("delete value type"):
        value_type.delete()
    logger.info("Deleted value type %s", value_type_id)


def clean_years(years) -> list[str]:
    cleaned = sorted({str(year).strip() for year in years or [] if str(year).strip()})
    if not cleaned:
        raise ValidationError("Select at least one year.")
    invalid = [year for year in cleaned if not YEAR_PATTERN.match(year)]
    if invalid:
        raise ValidationError(f"Invalid year: {invalid[0]}")
    return cleaned


def create_strategic_goal(*, goal: str, years) -> StrategicGoal:
    text = _required_text(goal, "Enter the goal text.")
    years = clean_years(years)
    with persist("create strategic goal"):
        strategic_goal = StrategicGoal.objects.create(goal=text, years=years)
    logger.info("Created strategic goal %s", strategic_goal.id)
    return strategic_goal


def update_strategic_goal(strategic_goal: StrategicGoal, *, goal: str, years) -> StrategicGoal:
    text = _required_text(goal, "Enter the goal text.")
    years = clean_years(years)
    with persist("update strategic goal"):
        strategic_goal.goal = text
        strategic_goal.years = years
        strategic_goal.save(update_fields=["goal", "years", "updated_at"])
        OperationalGoal.objects.filter(strategic_goal=strategic_goal).update(strategic_goal_text=text)
    logger.info("Updated strategic goal %s", strategic_goal.id)
    return strategic_goal


def delete_strategic_goal(strategic_goal: StrategicGoal) -> None:
    ensure_deletable(strategic_goal)
    strategic_goal_id = strategic_goal.id
    with persist("delete strategic goal"):
        strategic_goal.delete()
    logger.info("Deleted strategic goal %s", strategic_goal_id)


def _clean_periods(*, periods, strategic_goal: StrategicGoal, tracking_method: str, existing_keys=()) -> list[dict]:
    if not periods:
        raise ValidationError("Add at least one time period.")
    allowed_years = set(strategic_goal.years or [])
    existing_keys = set(existing_keys)
    known_type_ids = set(value_type_names())
    default_type_id = next(iter(sorted(known_type_ids, key=int)), "")
    seen = set()
    cleaned = []
    for row in periods:
        year = str(row.get("year") or "").strip()
        quarter = str(row.get("quarter") or "").strip().upper()
        if year not in allowed_years and (year, quarter) not in existing_keys:
            raise ValidationError(f"The year {year or '-'} is not part of the strategic goal.")
        if quarter not in QUARTERS:
            raise ValidationError(f"Invalid quarter: {quarter or '-'}")
        if (year, quarter) in seen:
            raise ValidationError(f"The period {year} {quarter} was added twice.")
        seen.add((year, quarter))

        target = parse_number(row.get("target"))
        if target is None or target < 0:
            raise ValidationError(f"Enter a target of zero or more for {year} {quarter}.")
        achieved_given = parse_number(row.get("achieved"))
        achieved = achieved_given or 0.0
        if achieved < 0:
            raise ValidationError(f"The achieved value for {year} {quarter} cannot be negative.")

        type_id = str(row.get("achieved_type_id") or "").strip() or default_type_id
        if type_id and type_id not in known_type_ids:
            raise ValidationError(f"Unknown value type for {year} {quarter}.")
        cleaned.append(
            {
                "year": year,
                "quarter": quarter,
                "target": target,
                "achieved": achieved if tracking_method == TRACKING_DIRECT else 0.0,
                "achieved_given": achieved_given is not None,
                "achieved_type_id": type_id,
            }
        )
    return cleaned


def _build_progress(*, cleaned_periods, tracking_method: str, existing=()) -> list[dict]:
    existing_by_key = {period.key: period for period in existing}
    periods = []
    for row in cleaned_periods:
        previous = existing_by_key.get((row["year"], row["quarter"]))
        if previous is not None:
            period = previous
            period.target = row["target"]
            period.achieved_type_id = row["achieved_type_id"]
        else:
            period = PeriodProgress(
                year=row["year"],
                quarter=row["quarter"],
                target=row["target"],
                achieved=row["achieved"],
                achieved_type_id=row["achieved_type_id"],
            )
            if tracking_method == TRACKING_WEEKLY:
                period.weeks = blank_weeks()
                period.weekly_total_achieved = 0.0
        if tracking_method == TRACKING_WEEKLY:
            period.ensure_weeks()
            if period.weekly_total_achieved is None:
                period.weekly_total_achieved = sum(entry.achieved for entry in period.weeks)
        periods.append(period)
    return dump_periods(periods)


def _clean_goal_fields(data: dict) -> dict:
    strategic_goal = data.get("strategic_goal")
    if strategic_goal is None:
        raise ValidationError("Select the strategic goal.")
    department = data.get("department")
    if department is None:
        raise ValidationError("Select the department.")
    tracking_method = data.get("tracking_method") or TRACKING_WEEKLY
    if tracking_method not in TRACKING_METHODS:
        raise ValidationError("Select a tracking method.")
    exclude = bool(data.get("exclude_from_calculation"))
    weight = parse_number(data.get("weight")) or 0.0
    if weight < 0:
        raise ValidationError("The weight cannot be negative.")
    display_options = [option for option in data.get("display_options") or [] if option in DISPLAY_OPTIONS]
    return {
        "goal": _required_text(data.get("goal"), "Enter the goal text."),
        "strategic_goal": strategic_goal,
        "strategic_goal_text": strategic_goal.goal,
        "department": department,
        "indicator": _required_text(data.get("indicator"), "Enter the indicator."),
        "tracking_method": tracking_method,
        "weight": 0 if exclude else weight,
        "exclude_from_calculation": exclude,
        "is_reverse": bool(data.get("is_reverse")),
        "calculation_method": (data.get("calculation_method") or "").strip(),
        "display_options": display_options,
        "icon": (data.get("icon") or "").strip() or DEFAULT_ICON,
    }


def create_operational_goal(*, data: dict) -> OperationalGoal:
    fields = _clean_goal_fields(data)
    cleaned_periods = _clean_periods(
        periods=data.get("periods"),
        strategic_goal=fields["strategic_goal"],
        tracking_method=fields["tracking_method"],
    )
    progress = _build_progress(cleaned_periods=cleaned_periods, tracking_method=fields["tracking_method"])
    with persist("create operational goal"):
        goal = OperationalGoal.objects.create(progress=progress, history=[], **fields)
    logger.info("Created operational goal %s", goal.id)
    return goal


def update_operational_goal(goal: OperationalGoal, *, data: dict, acting_user_id: str = "") -> OperationalGoal:
    fields = _clean_goal_fields(data)
    existing_keys = [period.key for period in goal.periods()]
    cleaned_periods = _clean_periods(
        periods=data.get("periods"),
        strategic_goal=fields["strategic_goal"],
        tracking_method=fields["tracking_method"],
        existing_keys=existing_keys,
    )
    progress = _build_progress(
        cleaned_periods=cleaned_periods,
        tracking_method=fields["tracking_method"],
        existing=goal.periods(),
    )
    with persist("update operational goal"):
        for name, value in fields.items():
            setattr(goal, name, value)
        goal.progress = progress
        goal.save()
        # Achieved edits on stored direct periods are recorded in history.
        if fields["tracking_method"] == TRACKING_DIRECT:
            editor = ProgressEditor(goal)
            for row in cleaned_periods:
                key = (row["year"], row["quarter"])
                if key not in existing_keys or not row["achieved_given"]:
                    continue
                if (editor.period(*key).achieved or 0.0) != row["achieved"]:
                    editor.set_direct_achieved(row["year"], row["quarter"], row["achieved"])
            if editor.has_changes:
                editor.commit(acting_user_id)
    logger.info("Updated operational goal %s", goal.id)
    return goal


def delete_operational_goal(goal: OperationalGoal) -> None:
    goal_id = goal.id
    with persist("delete operational goal"):
        goal.delete()
    logger.info("Deleted operational goal %s", goal_id)
