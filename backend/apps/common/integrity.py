"""Checks run before deleting records that other records point at."""

import logging

from apps.accounts.models import AccountDepartment, Department
from apps.common.errors import ReferentialIntegrityError
from apps.goals.models import AchievementValueType, OperationalGoal, StrategicGoal

logger = logging.getLogger(__name__)


def can_delete_department(department: Department) -> bool:
    if OperationalGoal.objects.filter(department=department).exists():
        return False
    return not AccountDepartment.objects.filter(department=department).exists()


def can_delete_strategic_goal(strategic_goal: StrategicGoal) -> bool:
    return not OperationalGoal.objects.filter(strategic_goal=strategic_goal).exists()


def can_delete_value_type(value_type: AchievementValueType) -> bool:
    type_id = str(value_type.id)
    for goal in OperationalGoal.objects.only("id", "progress").iterator():
        for period in goal.periods():
            if period.references_value_type(type_id=type_id, type_name=value_type.name):
                return False
    return True


BLOCKED_MESSAGES = {
    Department: "The department cannot be deleted because operational goals or users are linked to it.",
    StrategicGoal: "The goal cannot be deleted because operational goals are linked to it.",
    AchievementValueType: "The value type cannot be deleted because at least one operational goal uses it.",
}

GUARDS = {
    Department: can_delete_department,
    StrategicGoal: can_delete_strategic_goal,
    AchievementValueType: can_delete_value_type,
}


def can_delete(entity) -> bool:
    return GUARDS[type(entity)](entity)


def ensure_deletable(entity) -> None:
    if not can_delete(entity):
        logger.warning("Blocked delete of %s %s: still referenced", type(entity).__name__, entity.pk)
        raise ReferentialIntegrityError(BLOCKED_MESSAGES[type(entity)])
