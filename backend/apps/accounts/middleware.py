from .auth import resolve_session_context


class SessionContextMiddleware:
    """Resolve the signed-in account once per request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.session_context = resolve_session_context(request)
        return self.get_response(request)
