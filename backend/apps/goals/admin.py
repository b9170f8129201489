from django.contrib import admin

from .models import AchievementValueType, OperationalGoal, StrategicGoal


@admin.register(AchievementValueType)
class AchievementValueTypeAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)


@admin.register(StrategicGoal)
class StrategicGoalAdmin(admin.ModelAdmin):
    list_display = ("goal", "years_label", "created_at")
    search_fields = ("goal",)


@admin.register(OperationalGoal)
class OperationalGoalAdmin(admin.ModelAdmin):
    list_display = ("goal", "department", "tracking_method", "weight", "is_reverse")
    list_filter = ("tracking_method", "department", "is_reverse")
    search_fields = ("goal", "indicator", "strategic_goal_text")
    readonly_fields = ("history",)
