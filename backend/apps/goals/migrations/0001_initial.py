from django.db import migrations, models
import django.db.models.deletion

import apps.goals.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AchievementValueType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=128, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="StrategicGoal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("goal", models.TextField()),
                ("years", models.JSONField(default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="OperationalGoal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("goal", models.TextField()),
                ("strategic_goal_text", models.TextField(blank=True)),
                ("indicator", models.TextField(blank=True)),
                (
                    "tracking_method",
                    models.CharField(
                        choices=[("weekly", "Weekly"), ("direct", "Direct")],
                        default="weekly",
                        max_length=16,
                    ),
                ),
                ("weight", models.FloatField(default=0)),
                ("exclude_from_calculation", models.BooleanField(default=False)),
                ("is_reverse", models.BooleanField(default=False)),
                ("calculation_method", models.TextField(blank=True)),
                ("display_options", models.JSONField(default=apps.goals.models.default_display_options)),
                ("icon", models.CharField(default="fa-tasks", max_length=64)),
                ("progress", models.JSONField(default=list)),
                ("history", models.JSONField(default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="operational_goals",
                        to="accounts.department",
                    ),
                ),
                (
                    "strategic_goal",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="operational_goals",
                        to="goals.strategicgoal",
                    ),
                ),
            ],
            options={
                "ordering": ["goal", "id"],
            },
        ),
    ]
