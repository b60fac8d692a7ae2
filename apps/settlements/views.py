from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, has_capability
from apps.settlements import services
from apps.settlements.models import DailyReconciliation, Settlement
from apps.settlements.serializers import (
    CloseDaySerializer,
    DailyReconciliationSerializer,
    ReconciliationQuerySerializer,
    ReconciliationStatusSerializer,
    ReconciliationVerifySerializer,
    SettlementCreateSerializer,
    SettlementQuerySerializer,
    SettlementReceiveSerializer,
    SettlementSerializer,
    SettlementStatusSerializer,
    SettlementVerifySerializer,
)


class SettlementViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Settlement.objects.select_related("employee").prefetch_related("transactions")
    serializer_class = SettlementSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["settlements.view"],
        "retrieve": ["settlements.view"],
        "create": ["settlements.create"],
        "receive": ["settlements.manage"],
        "verify": ["settlements.manage"],
        "update_status": ["settlements.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if not has_capability(self.request.user, "settlements.view.all"):
            queryset = queryset.filter(employee=self.request.user)
        if self.action != "list":
            return queryset
        query_serializer = SettlementQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if params.get("employee"):
            queryset = queryset.filter(employee_id=params["employee"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = SettlementCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        employee = serializer.validated_data.get("employee") or request.user
        if employee.pk != request.user.pk and not has_capability(request.user, "settlements.view.all"):
            raise PermissionDenied("Field staff can only settle their own collections.")
        settlement = services.create_settlement(employee=employee, transactions=serializer.validated_data["transactions"])
        record_audit(
            actor=request.user,
            action="settlements.create",
            entity_type="settlement",
            entity_id=settlement.id,
            payload={"employee_id": employee.pk, "expected_amount": str(settlement.expected_amount)},
        )
        return Response(self.get_serializer(settlement).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def receive(self, request, pk=None):
        serializer = SettlementReceiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        settlement = services.receive_settlement(self.get_object(), actor=request.user, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="settlements.receive",
            entity_type="settlement",
            entity_id=settlement.id,
            payload={"received_amount": str(settlement.received_amount), "variance": str(settlement.variance)},
        )
        return Response(self.get_serializer(settlement).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"])
    def verify(self, request):
        serializer = SettlementVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        settlement = services.verify_settlement(actor=request.user, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="settlements.verify",
            entity_type="settlement",
            entity_id=settlement.id,
            payload={"status": settlement.status, "variance": str(settlement.variance)},
        )
        return Response(self.get_serializer(settlement).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="update-status")
    def update_status(self, request, pk=None):
        serializer = SettlementStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        settlement = self.get_object()
        previous = settlement.status
        settlement = services.override_settlement_status(settlement, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="settlements.update_status",
            entity_type="settlement",
            entity_id=settlement.id,
            payload={"from": previous, "to": settlement.status},
        )
        return Response(self.get_serializer(settlement).data, status=status.HTTP_200_OK)


class DailyReconciliationViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = DailyReconciliation.objects.select_related("employee")
    serializer_class = DailyReconciliationSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["reconciliations.view"],
        "retrieve": ["reconciliations.view"],
        "verify": ["reconciliations.manage"],
        "update_status": ["reconciliations.manage"],
        "close_day": ["reconciliations.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            return queryset
        query_serializer = ReconciliationQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if params.get("employee"):
            queryset = queryset.filter(employee_id=params["employee"])
        if params.get("date"):
            queryset = queryset.filter(date=params["date"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    @action(detail=False, methods=["post"])
    def verify(self, request):
        serializer = ReconciliationVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reconciliation = services.verify_reconciliation(actor=request.user, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="reconciliations.verify",
            entity_type="daily_reconciliation",
            entity_id=reconciliation.id,
            payload={"status": reconciliation.status, "variance": str(reconciliation.variance)},
        )
        return Response(self.get_serializer(reconciliation).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="update-status")
    def update_status(self, request, pk=None):
        serializer = ReconciliationStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reconciliation = services.override_reconciliation_status(self.get_object(), **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="reconciliations.update_status",
            entity_type="daily_reconciliation",
            entity_id=reconciliation.id,
            payload={"status": reconciliation.status},
        )
        return Response(self.get_serializer(reconciliation).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="close-day")
    def close_day(self, request):
        serializer = CloseDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        date = serializer.validated_data["date"]
        closed = services.close_day(date)
        record_audit(
            actor=request.user,
            action="reconciliations.close_day",
            entity_type="daily_reconciliation",
            entity_id=date.isoformat(),
            payload={"closed": closed},
        )
        return Response({"date": date, "closed": closed}, status=status.HTTP_200_OK)
