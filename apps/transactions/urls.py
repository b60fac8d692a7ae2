from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.transactions.views import PendingHandoverListView, TransactionViewSet, VerifyHandoverView
from apps.transactions.views_metrics import DailySummaryView, EmployeeStatusView

router = DefaultRouter()
router.register("transactions", TransactionViewSet, basename="transaction")

urlpatterns = [
    path("handovers/pending/", PendingHandoverListView.as_view(), name="handover-pending"),
    path("handovers/verify/", VerifyHandoverView.as_view(), name="handover-verify"),
    path("reports/daily-summary/", DailySummaryView.as_view(), name="report-daily-summary"),
    path("reports/employee-status/", EmployeeStatusView.as_view(), name="report-employee-status"),
]
urlpatterns += router.urls
