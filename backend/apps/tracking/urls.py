from django.urls import path

from .views import goal_detail, tracking_index

urlpatterns = [
    path("", tracking_index, name="tracking_index"),
    path("<int:goal_id>/", goal_detail, name="goal_detail"),
]
