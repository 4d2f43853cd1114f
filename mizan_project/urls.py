from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

from core.views import health_check


def _build_urlpatterns():
    patterns = [
        path("admin/", admin.site.urls),
        path("api/v1/health/", health_check, name="health"),
        path("api/v1/", include("core.urls")),
        path("api/v1/billing/", include("billing.urls")),
        path("api/v1/notifications/", include("notifications.urls")),
        path("api/v1/integrations/", include("integrations.urls")),
        path("api/v1/risk/", include("risk.urls")),
        path("api/v1/taxes/", include("taxes.urls")),
        path("api/v1/kvkk/", include("kvkk.urls")),
    ]

    if settings.DEBUG:
        patterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

    return patterns


urlpatterns = _build_urlpatterns()
