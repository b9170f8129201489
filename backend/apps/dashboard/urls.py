from django.urls import path

from .views import (
    account_delete,
    account_settings,
    dashboard_index,
    department_delete,
    department_settings,
    value_type_delete,
    value_type_settings,
)

urlpatterns = [
    path("", dashboard_index, name="dashboard_index"),
    path("accounts/", account_settings, name="account_settings"),
    path("accounts/<int:account_id>/delete/", account_delete, name="account_delete"),
    path("departments/", department_settings, name="department_settings"),
    path(
        "departments/<int:department_id>/delete/",
        department_delete,
        name="department_delete",
    ),
    path("value-types/", value_type_settings, name="value_type_settings"),
    path(
        "value-types/<int:value_type_id>/delete/",
        value_type_delete,
        name="value_type_delete",
    ),
]
