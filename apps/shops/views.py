from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission
from apps.ledger.serializers import BalanceAuditLogSerializer
from apps.shops.models import Shop
from apps.shops.serializers import CorrectionSerializer, ShopCreateSerializer, ShopQuerySerializer, ShopSerializer
from apps.shops.services import apply_correction, create_shop, delete_shop, update_shop


class ShopViewSet(viewsets.ModelViewSet):
    queryset = Shop.objects.select_related("route")
    serializer_class = ShopSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["shops.view"],
        "retrieve": ["shops.view"],
        "zones": ["shops.view"],
        "ledger": ["ledger.view"],
        "create": ["shops.manage"],
        "partial_update": ["shops.manage"],
        "update": ["shops.manage"],
        "destroy": ["shops.manage"],
        "correction": ["ledger.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            return queryset
        query_serializer = ShopQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if not params["include_deleted"]:
            queryset = queryset.filter(deleted_at__isnull=True)
        if params.get("zone"):
            queryset = queryset.filter(zone__iexact=params["zone"])
        if params.get("route"):
            queryset = queryset.filter(route_id=params["route"])
        query = params.get("q")
        if query:
            queryset = queryset.filter(Q(name__icontains=query) | Q(code__icontains=query) | Q(address__icontains=query))
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = ShopCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        shop = create_shop(actor=request.user, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="shops.create",
            entity_type="shop",
            entity_id=shop.id,
            payload={"name": shop.name, "opening_balance": str(shop.current_balance)},
        )
        return Response(ShopSerializer(shop).data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        shop = update_shop(serializer.instance, **serializer.validated_data)
        record_audit(
            actor=self.request.user,
            action="shops.update",
            entity_type="shop",
            entity_id=shop.id,
            payload={field: str(value) for field, value in serializer.validated_data.items()},
        )

    def perform_destroy(self, instance):
        delete_shop(instance)
        record_audit(
            actor=self.request.user,
            action="shops.delete",
            entity_type="shop",
            entity_id=instance.id,
            payload={"name": instance.name},
        )

    @action(detail=False, methods=["get"])
    def zones(self, request):
        zones = (
            Shop.objects.alive()
            .exclude(zone="")
            .order_by("zone")
            .values_list("zone", flat=True)
            .distinct()
        )
        return Response(list(zones))

    @action(detail=True, methods=["get"])
    def ledger(self, request, pk=None):
        shop = self.get_object()
        entries = shop.ledger_entries.select_related("changed_by").order_by("-created_at")
        page = self.paginate_queryset(entries)
        if page is not None:
            return self.get_paginated_response(BalanceAuditLogSerializer(page, many=True).data)
        return Response(BalanceAuditLogSerializer(entries, many=True).data)

    @action(detail=True, methods=["post"])
    def correction(self, request, pk=None):
        shop = self.get_object()
        serializer = CorrectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = apply_correction(
            shop=shop,
            amount=serializer.validated_data["amount"],
            note=serializer.validated_data["note"],
            actor=request.user,
        )
        record_audit(
            actor=request.user,
            action="shops.correction",
            entity_type="shop",
            entity_id=shop.id,
            payload={
                "amount": str(serializer.validated_data["amount"]),
                "old_balance": str(result["old_balance"]),
                "new_balance": str(result["new_balance"]),
            },
        )
        return Response(result, status=status.HTTP_200_OK)
