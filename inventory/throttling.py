"""Scoped throttle for the inventory endpoints.

Rates are looked up from Django settings at request time so tests using
override_settings see the new rate without reloading DRF's api_settings.
"""

from django.conf import settings
from rest_framework.throttling import ScopedRateThrottle


class InventoryScopedRateThrottle(ScopedRateThrottle):
    def get_rate(self):
        rf = getattr(settings, "REST_FRAMEWORK", {})
        rates = rf.get("DEFAULT_THROTTLE_RATES", {})
        return rates.get(self.scope)


# EOF
