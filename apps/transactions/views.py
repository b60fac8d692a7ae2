from django.shortcuts import get_object_or_404
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.accounts.models import Employee
from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, has_capability
from apps.transactions import services
from apps.transactions.models import Transaction
from apps.transactions.serializers import (
    CashQuerySerializer,
    CollectCashSerializer,
    HandoverVerifySerializer,
    ReverseSerializer,
    TransactionQuerySerializer,
    TransactionSerializer,
)


class TransactionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Transaction.objects.select_related("shop", "employee")
    serializer_class = TransactionSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["transactions.view"],
        "retrieve": ["transactions.view"],
        "cash_in_hand": ["transactions.view"],
        "cash_in_bag": ["transactions.view"],
        "collect_cash": ["transactions.collect"],
        "reverse": ["transactions.reverse"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if not has_capability(self.request.user, "transactions.view.all"):
            queryset = queryset.filter(employee=self.request.user)
        if self.action != "list":
            return queryset
        query_serializer = TransactionQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if params.get("employee"):
            queryset = queryset.filter(employee_id=params["employee"])
        if params.get("shop"):
            queryset = queryset.filter(shop_id=params["shop"])
        if params.get("date"):
            queryset = queryset.filter(timestamp__date=params["date"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("payment_mode"):
            queryset = queryset.filter(payment_mode=params["payment_mode"])
        if params.get("is_verified") is not None:
            queryset = queryset.filter(is_verified=params["is_verified"])
        return queryset

    def _target_employee(self, requested):
        """Field staff always act for themselves; admins may name any employee."""
        if has_capability(self.request.user, "transactions.view.all"):
            return requested or self.request.user
        if requested is not None and requested.pk != self.request.user.pk:
            raise PermissionDenied("Field staff can only act on their own collections.")
        return self.request.user

    def _cash_query(self):
        query_serializer = CashQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        requested = get_object_or_404(Employee, pk=params["employee"]) if params.get("employee") else None
        return self._target_employee(requested), params["date"]

    @action(detail=False, methods=["post"], url_path="collect-cash")
    def collect_cash(self, request):
        serializer = CollectCashSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        employee = self._target_employee(data.pop("employee", None))
        txn = services.collect_cash(employee=employee, actor=request.user, **data)
        return Response(self.get_serializer(txn).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def reverse(self, request, pk=None):
        txn = self.get_object()
        serializer = ReverseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        txn = services.reverse_transaction(txn, actor=request.user, reason=serializer.validated_data["reason"])
        record_audit(
            actor=request.user,
            action="transactions.reverse",
            entity_type="transaction",
            entity_id=txn.id,
            payload={"amount": str(txn.amount), "reason": txn.reverse_reason},
        )
        return Response(self.get_serializer(txn).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="cash-in-hand")
    def cash_in_hand(self, request):
        employee, date = self._cash_query()
        totals = services.cash_in_hand(employee, date)
        return Response({"employee_id": employee.pk, "date": date, **totals})

    @action(detail=False, methods=["get"], url_path="cash-in-bag")
    def cash_in_bag(self, request):
        employee, _ = self._cash_query()
        return Response({"employee_id": employee.pk, **services.cash_in_bag(employee)})


class PendingHandoverListView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["handovers.manage"]}

    def get(self, request, *args, **kwargs):
        return Response(services.pending_handovers())


class VerifyHandoverView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"post": ["handovers.manage"]}
    serializer_class = HandoverVerifySerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        employee = serializer.validated_data["employee"]
        result = services.verify_handover(employee=employee, actor=request.user)
        record_audit(
            actor=request.user,
            action="handovers.verify",
            entity_type="employee",
            entity_id=employee.pk,
            payload={"verified": result["verified"], "amount": str(result["amount"])},
        )
        return Response(result, status=status.HTTP_200_OK)
