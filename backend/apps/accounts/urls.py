from django.urls import path

from .views import api_login, api_logout, api_user, home, logout_view

urlpatterns = [
    path("", home, name="home"),
    path("logout/", logout_view, name="logout"),
    path("api/auth/login/", api_login, name="api_login"),
    path("api/auth/logout/", api_logout, name="api_logout"),
    path("api/auth/user/", api_user, name="api_user"),
]
