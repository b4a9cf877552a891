"""Scoped throttles for the inventory app.

Rates are looked up from Django settings at request time, so tests using
override_settings affect them. Authenticated callers are throttled per user,
anonymous callers per client address.
"""

from django.conf import settings
from rest_framework.throttling import ScopedRateThrottle


class InventoryScopedRateThrottle(ScopedRateThrottle):
    def get_rate(self):
        rf = getattr(settings, "REST_FRAMEWORK", {})
        rates = rf.get("DEFAULT_THROTTLE_RATES", {})
        return rates.get(self.scope)

    def get_cache_key(self, request, view):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            ident = f"user:{user.pk}"
        else:
            ident = f"anon:{self.get_ident(request)}"
        return self.cache_format % {"scope": self.scope, "ident": ident}
