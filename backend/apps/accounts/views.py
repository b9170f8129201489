import json
import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST

from apps.common.errors import KpiError

from .auth import SESSION_ACCOUNT_KEY, SessionContext, authenticate_account, get_current_user_profile
from .forms import LoginForm

logger = logging.getLogger(__name__)


def _start_session(request: HttpRequest, account, *, remember_me: bool) -> SessionContext:
    request.session.cycle_key()
    request.session[SESSION_ACCOUNT_KEY] = account.id
    request.session.set_expiry(
        settings.KPI_REMEMBER_ME_SESSION_AGE if remember_me else settings.KPI_SESSION_AGE
    )
    context = SessionContext.from_account(account)
    request.session_context = context
    return context


def home(request: HttpRequest) -> HttpResponse:
    if request.method == "GET" and get_current_user_profile(request) is not None:
        return redirect("dashboard_index")

    if request.method == "POST":
        form = LoginForm(request.POST)
        if form.is_valid():
            try:
                account = authenticate_account(form.cleaned_data["email"], form.cleaned_data["password"])
            except KpiError as exc:
                form.add_error(None, str(exc))
            else:
                _start_session(request, account, remember_me=form.cleaned_data["remember_me"])
                return redirect("dashboard_index")
    else:
        form = LoginForm()

    return render(request, "accounts/login.html", {"form": form})


def logout_view(request: HttpRequest) -> HttpResponse:
    request.session.flush()
    return redirect("home")


def _request_payload(request: HttpRequest) -> dict:
    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body or b"{}")
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
    return request.POST.dict()


@require_POST
def api_login(request: HttpRequest) -> JsonResponse:
    payload = _request_payload(request)
    email = str(payload.get("email") or "")
    password = str(payload.get("password") or "")
    remember_me = str(payload.get("rememberMe", payload.get("remember_me", ""))).lower() in {"1", "true", "on"}
    if not email or not password:
        return JsonResponse({"error": "Enter both email and password."}, status=400)
    try:
        account = authenticate_account(email, password)
    except KpiError as exc:
        return JsonResponse({"error": str(exc)}, status=401)
    context = _start_session(request, account, remember_me=remember_me)
    return JsonResponse({"success": True, "user": context.as_profile()})


@require_POST
def api_logout(request: HttpRequest) -> JsonResponse:
    request.session.flush()
    return JsonResponse({"success": True})


@require_GET
@ensure_csrf_cookie
def api_user(request: HttpRequest) -> JsonResponse:
    context = get_current_user_profile(request)
    return JsonResponse({"user": context.as_profile() if context else None})
