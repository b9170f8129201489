from django.urls import path

from .views import (
    operational_goal_create,
    operational_goal_delete,
    operational_goal_edit,
    operational_goal_list,
    strategic_goal_delete,
    strategic_goal_settings,
)

urlpatterns = [
    path("strategic/", strategic_goal_settings, name="strategic_goal_settings"),
    path("strategic/<int:goal_id>/delete/", strategic_goal_delete, name="strategic_goal_delete"),
    path("operational/", operational_goal_list, name="operational_goal_list"),
    path("operational/new/", operational_goal_create, name="operational_goal_create"),
    path("operational/<int:goal_id>/edit/", operational_goal_edit, name="operational_goal_edit"),
    path("operational/<int:goal_id>/delete/", operational_goal_delete, name="operational_goal_delete"),
]
