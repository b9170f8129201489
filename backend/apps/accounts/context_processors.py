from .auth import get_current_user_profile


def session_context(request):
    return {"current_user": get_current_user_profile(request)}
