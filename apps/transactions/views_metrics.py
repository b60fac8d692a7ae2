from decimal import Decimal

from django.db.models import Count, DecimalField, Max, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone
from rest_framework import generics
from rest_framework.response import Response

from apps.accounts.models import Employee, EmployeeRole, EmployeeStatus
from apps.common.permissions import RolePermission
from apps.routes.models import AssignmentStatus, RouteAssignment
from apps.transactions.models import PaymentMode, Transaction, TransactionStatus
from apps.transactions.serializers import ReportQuerySerializer

ACTIVE_MINUTES = 60
DELAYED_MINUTES = 180


def activity_status(last_activity, now):
    if last_activity is None:
        return "idle"
    minutes = (now - last_activity).total_seconds() / 60
    if minutes < ACTIVE_MINUTES:
        return "active"
    if minutes < DELAYED_MINUTES:
        return "delayed"
    return "idle"


class ReportsMixin:
    permission_classes = [RolePermission]
    capability_map = {"get": ["reports.view"]}

    @staticmethod
    def _report_date(request):
        query_serializer = ReportQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        return query_serializer.validated_data["date"]

    @staticmethod
    def _completed_on(date):
        return Transaction.objects.filter(status=TransactionStatus.COMPLETED, timestamp__date=date)


class DailySummaryView(ReportsMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        date = self._report_date(request)
        summary = self._completed_on(date).aggregate(
            total_collected=Coalesce(
                Sum("amount"),
                Value(Decimal("0.00")),
                output_field=DecimalField(max_digits=16, decimal_places=2),
            ),
            cash_in_hand=Coalesce(
                Sum("amount", filter=Q(payment_mode=PaymentMode.CASH)),
                Value(Decimal("0.00")),
                output_field=DecimalField(max_digits=16, decimal_places=2),
            ),
            digital_payments=Coalesce(
                Sum("amount", filter=Q(payment_mode__in=[PaymentMode.UPI, PaymentMode.CHEQUE])),
                Value(Decimal("0.00")),
                output_field=DecimalField(max_digits=16, decimal_places=2),
            ),
            transaction_count=Count("id"),
        )
        return Response({"date": date, **summary})


class EmployeeStatusView(ReportsMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        date = self._report_date(request)
        now = timezone.now()

        activity = {
            row["employee_id"]: row
            for row in self._completed_on(date)
            .values("employee_id")
            .annotate(
                collections_count=Count("id"),
                cash_in_hand=Coalesce(
                    Sum("amount", filter=Q(payment_mode=PaymentMode.CASH)),
                    Value(Decimal("0.00")),
                    output_field=DecimalField(max_digits=16, decimal_places=2),
                ),
                last_activity=Max("timestamp"),
            )
            .order_by()
        }
        routes = dict(
            RouteAssignment.objects.filter(date=date, status=AssignmentStatus.ACTIVE).values_list(
                "employee_id", "route__name"
            )
        )

        employees = Employee.objects.alive().filter(
            role=EmployeeRole.FIELD_STAFF,
            status=EmployeeStatus.ACTIVE,
        ).order_by("name")

        results = []
        for employee in employees:
            row = activity.get(employee.pk, {})
            last_activity = row.get("last_activity")
            results.append(
                {
                    "employee_id": employee.pk,
                    "name": employee.name,
                    "route": routes.get(employee.pk),
                    "collections_count": row.get("collections_count", 0),
                    "cash_in_hand": row.get("cash_in_hand", Decimal("0.00")),
                    "last_activity": last_activity,
                    "status": activity_status(last_activity, now),
                }
            )
        return Response(results)
