from django.conf import settings
from rest_framework.authentication import BaseAuthentication

from .models import User


class DevCookieAuthentication(BaseAuthentication):
    """
    In DEV_MODE (DEBUG on, not production) a request carrying the dev-auth cookie is
    treated as the DEV_AUTH_EMAIL account (when that account exists and is live).
    """

    def authenticate(self, request):
        if not getattr(settings, "DEV_MODE", False):
            return None
        if request.COOKIES.get(settings.DEV_AUTH_COOKIE) != "1":
            return None
        email = getattr(settings, "DEV_AUTH_EMAIL", "")
        if not email:
            return None
        user = User.objects.filter(email__iexact=email, is_active=True).first()
        if user is None:
            return None
        return (user, None)
