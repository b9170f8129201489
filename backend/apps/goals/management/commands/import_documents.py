import json
import logging
from datetime import datetime, timezone as dt_timezone
from pathlib import Path

from django.contrib.auth.hashers import identify_hasher, make_password
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.dateparse import parse_datetime

from apps.accounts.auth import normalize_role
from apps.accounts.models import Account, AccountDepartment, Department
from apps.common.documents import TRACKING_METHOD_CHOICES, TRACKING_WEEKLY, PeriodProgress, dump_periods
from apps.goals.models import DEFAULT_ICON, AchievementValueType, OperationalGoal, StrategicGoal, default_display_options

logger = logging.getLogger(__name__)

TRACKING_METHODS = {value for value, _ in TRACKING_METHOD_CHOICES}


def timestamp_to_iso(value) -> str | None:
    """Accept exported timestamps as ISO text, epoch seconds or ``{"seconds": ...}`` maps."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        return parsed.isoformat() if parsed else None
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        value = float(seconds) + float(value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0) / 1e9
    return datetime.fromtimestamp(float(value), tz=dt_timezone.utc).isoformat()


def hash_password(password: str) -> str:
    try:
        identify_hasher(password)
    except ValueError:
        return make_password(password)
    return password


def legacy_department_ids(document: dict) -> list[str]:
    ids = [str(value) for value in document.get("departmentIds") or [] if value]
    if not ids and document.get("departmentId"):
        ids = [str(document["departmentId"])]
    return ids


class Command(BaseCommand):
    help = "Import a JSON export of departments, value types, users and goals."

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the JSON export.")

    def handle(self, *args, **options):
        path = Path(options["path"])
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise CommandError(f"File not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise CommandError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise CommandError("The export must be a JSON object keyed by collection name.")

        with transaction.atomic():
            department_ids = self._import_departments(payload.get("departments") or [])
            value_type_ids, value_type_by_name = self._import_value_types(payload.get("achievementValueTypes") or [])
            account_ids = self._import_users(payload.get("users") or [], department_ids)
            strategic_ids = self._import_strategic_goals(payload.get("strategicGoals") or [])
            goal_count = self._import_operational_goals(
                payload.get("operationalGoals") or [],
                department_ids=department_ids,
                strategic_ids=strategic_ids,
                value_type_ids=value_type_ids,
                value_type_by_name=value_type_by_name,
                account_ids=account_ids,
            )

        logger.info("Imported documents from %s", path)
        self.stdout.write(
            self.style.SUCCESS(
                f"Completed: departments={len(department_ids)}, value types={len(value_type_ids)}, "
                f"users={len(account_ids)}, strategic goals={len(strategic_ids)}, "
                f"operational goals={goal_count}."
            )
        )

    def _import_departments(self, documents) -> dict[str, int]:
        ids = {}
        for document in documents:
            name = (document.get("name") or "").strip()
            if not name:
                continue
            department, _ = Department.objects.get_or_create(name=name)
            ids[str(document.get("id") or name)] = department.id
        return ids

    def _import_value_types(self, documents):
        ids = {}
        by_name = {}
        for document in documents:
            name = (document.get("name") or "").strip()
            if not name:
                continue
            value_type, _ = AchievementValueType.objects.get_or_create(name=name)
            ids[str(document.get("id") or name)] = str(value_type.id)
            by_name[name] = str(value_type.id)
        return ids, by_name

    def _import_users(self, documents, department_ids: dict[str, int]) -> dict[str, int]:
        ids = {}
        for document in documents:
            email = (document.get("email") or "").strip().lower()
            if not email:
                continue
            account, created = Account.objects.get_or_create(
                email=email,
                defaults={
                    "name": (document.get("name") or email).strip(),
                    "password": hash_password(document.get("password") or ""),
                    "role": normalize_role(document.get("role")),
                },
            )
            if created:
                for legacy_id in legacy_department_ids(document):
                    if legacy_id in department_ids:
                        AccountDepartment.objects.get_or_create(
                            account=account,
                            department_id=department_ids[legacy_id],
                        )
            else:
                self.stdout.write(self.style.WARNING(f"Skipped existing user {email}."))
            ids[str(document.get("id") or email)] = account.id
        return ids

    def _import_strategic_goals(self, documents) -> dict[str, int]:
        ids = {}
        for document in documents:
            text = (document.get("goal") or "").strip()
            if not text:
                continue
            strategic_goal = StrategicGoal.objects.create(
                goal=text,
                years=sorted({str(year) for year in document.get("years") or []}),
            )
            ids[str(document.get("id") or strategic_goal.id)] = strategic_goal.id
        return ids

    def _normalize_period(self, document: dict, *, value_type_ids, value_type_by_name) -> PeriodProgress:
        period = PeriodProgress.from_document(document)
        if period.achieved_type_id:
            period.achieved_type_id = value_type_ids.get(period.achieved_type_id, "")
        if not period.achieved_type_id and period.legacy_type_name in value_type_by_name:
            period.achieved_type_id = value_type_by_name[period.legacy_type_name]
            period.legacy_type_name = ""
        return period

    def _normalize_history(self, entries, *, account_ids) -> list[dict]:
        normalized = []
        for entry in entries or []:
            user_id = str(entry.get("userId") or "")
            normalized.append(
                {
                    **entry,
                    "userId": str(account_ids.get(user_id, user_id)),
                    "changedAt": timestamp_to_iso(entry.get("changedAt")),
                }
            )
        return normalized

    def _import_operational_goals(
        self,
        documents,
        *,
        department_ids,
        strategic_ids,
        value_type_ids,
        value_type_by_name,
        account_ids,
    ) -> int:
        count = 0
        for document in documents:
            text = (document.get("goal") or "").strip()
            if not text:
                continue
            strategic_goal = None
            strategic_id = strategic_ids.get(str(document.get("strategicGoalId") or ""))
            if strategic_id:
                strategic_goal = StrategicGoal.objects.get(id=strategic_id)
            tracking_method = document.get("trackingMethod") or TRACKING_WEEKLY
            if tracking_method not in TRACKING_METHODS:
                tracking_method = TRACKING_WEEKLY
            periods = [
                self._normalize_period(
                    period,
                    value_type_ids=value_type_ids,
                    value_type_by_name=value_type_by_name,
                )
                for period in document.get("progress") or []
            ]
            OperationalGoal.objects.create(
                goal=text,
                strategic_goal=strategic_goal,
                strategic_goal_text=strategic_goal.goal if strategic_goal else (document.get("strategicGoalText") or ""),
                department_id=department_ids.get(str(document.get("departmentId") or "")),
                indicator=document.get("indicator") or "",
                tracking_method=tracking_method,
                weight=float(document.get("weight") or 0),
                exclude_from_calculation=bool(document.get("excludeFromCalculation")),
                is_reverse=bool(document.get("isReverse")),
                calculation_method=document.get("calculationMethod") or "",
                display_options=document.get("displayOptions") or default_display_options(),
                icon=document.get("icon") or DEFAULT_ICON,
                progress=dump_periods(periods),
                history=self._normalize_history(document.get("history"), account_ids=account_ids),
            )
            count += 1
        return count
