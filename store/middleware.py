# store/middleware.py: development-only request fixes (no-ops unless DEV_MODE)
from django.conf import settings
from django.http import HttpResponseRedirect
from django.utils.deprecation import MiddlewareMixin


def _dev_mode() -> bool:
    return getattr(settings, "DEV_MODE", False)


class DevOriginMiddleware(MiddlewareMixin):
    """
    Behind a forwarding proxy (Codespaces, tunnels) the browser may send a
    localhost Origin while X-Forwarded-Host names the public host, and the
    CSRF origin check then rejects the POST. In DEV_MODE the Origin is
    rewritten to the forwarded host.
    """

    def process_request(self, request):
        if not _dev_mode():
            return None
        forwarded_host = request.META.get("HTTP_X_FORWARDED_HOST", "")
        origin = request.META.get("HTTP_ORIGIN", "")
        if not forwarded_host or not origin:
            return None
        if "localhost" in origin and forwarded_host not in origin:
            scheme = "https" if request.META.get("HTTP_X_FORWARDED_PROTO", "") == "https" else request.scheme
            request.META["HTTP_ORIGIN"] = f"{scheme}://{forwarded_host}"
        return None


class DevAuthCookieMiddleware(MiddlewareMixin):
    """Sets the httpOnly dev-auth cookie and sends /login straight to /admin/."""

    def process_request(self, request):
        if _dev_mode() and request.path.rstrip("/") == "/login":
            response = HttpResponseRedirect("/admin/")
            self._set_cookie(response)
            return response
        return None

    def process_response(self, request, response):
        if _dev_mode() and request.COOKIES.get(settings.DEV_AUTH_COOKIE) != "1":
            self._set_cookie(response)
        return response

    def _set_cookie(self, response):
        response.set_cookie(settings.DEV_AUTH_COOKIE, "1", path="/", httponly=True, samesite="Lax")
