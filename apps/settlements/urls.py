from rest_framework.routers import DefaultRouter

from apps.settlements.views import DailyReconciliationViewSet, SettlementViewSet

router = DefaultRouter()
router.register("settlements", SettlementViewSet, basename="settlement")
router.register("reconciliations", DailyReconciliationViewSet, basename="reconciliation")

urlpatterns = router.urls
