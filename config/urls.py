from django.contrib import admin
from django.urls import include, path

from apps.accounts.views import IdentityWebhookView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", include("apps.health.urls")),
    path("clerk-webhook", IdentityWebhookView.as_view(), name="clerk-webhook"),
    path("api/v1/", include("apps.api_urls")),
]
