from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain-pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("", include("apps.accounts.urls")),
    path("", include("apps.shops.urls")),
    path("", include("apps.transactions.urls")),
    path("", include("apps.invoices.urls")),
    path("", include("apps.settlements.urls")),
    path("", include("apps.routes.urls")),
    path("", include("apps.audit.urls")),
]
