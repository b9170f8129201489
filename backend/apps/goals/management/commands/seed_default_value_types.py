from django.core.management.base import BaseCommand
from django.db import transaction

from apps.goals.models import AchievementValueType

DEFAULT_VALUE_TYPES = [
    "percentage",
    "numeric value",
]


class Command(BaseCommand):
    help = "Seed the default achievement value types only when the table is empty."

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Create missing defaults even if value types already exist.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if not options["force"] and AchievementValueType.objects.exists():
            self.stdout.write(
                self.style.WARNING("Skipped: value types already exist. Use --force to add defaults.")
            )
            return

        created = 0
        for name in DEFAULT_VALUE_TYPES:
            _, was_created = AchievementValueType.objects.get_or_create(name=name)
            if was_created:
                created += 1

        self.stdout.write(self.style.SUCCESS(f"Completed: value types(created={created})."))
