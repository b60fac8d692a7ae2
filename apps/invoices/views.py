from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission
from apps.common.text import find_by_normalized_key
from apps.invoices.models import Invoice
from apps.invoices.serializers import InvoiceCancelSerializer, InvoiceQuerySerializer, InvoiceSerializer
from apps.invoices.services import cancel_invoice, create_invoice, update_invoice


class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Invoice.objects.select_related("shop", "created_by")
    serializer_class = InvoiceSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["invoices.view"],
        "retrieve": ["invoices.view"],
        "by_number": ["invoices.view"],
        "create": ["invoices.manage"],
        "partial_update": ["invoices.manage"],
        "update": ["invoices.manage"],
        "cancel": ["invoices.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            return queryset
        query_serializer = InvoiceQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if params.get("shop"):
            queryset = queryset.filter(shop_id=params["shop"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        query = params.get("q")
        if query:
            queryset = queryset.filter(
                Q(invoice_number__icontains=query) | Q(reference__icontains=query) | Q(shop__name__icontains=query)
            )
        return queryset

    def perform_create(self, serializer):
        invoice = create_invoice(actor=self.request.user, **serializer.validated_data)
        serializer.instance = invoice
        record_audit(
            actor=self.request.user,
            action="invoices.create",
            entity_type="invoice",
            entity_id=invoice.id,
            payload={"invoice_number": invoice.invoice_number, "amount": str(invoice.amount)},
        )

    def perform_update(self, serializer):
        before = {"invoice_number": serializer.instance.invoice_number, "amount": str(serializer.instance.amount)}
        invoice = update_invoice(serializer.instance, actor=self.request.user, **serializer.validated_data)
        serializer.instance = invoice
        record_audit(
            actor=self.request.user,
            action="invoices.update",
            entity_type="invoice",
            entity_id=invoice.id,
            payload={"before": before, "after": {"invoice_number": invoice.invoice_number, "amount": str(invoice.amount)}},
        )

    @action(detail=False, methods=["get"], url_path=r"by-number/(?P<invoice_number>[^/]+)")
    def by_number(self, request, invoice_number=None):
        invoice = find_by_normalized_key(self.get_queryset(), "invoice_number", invoice_number)
        if invoice is None:
            raise NotFound("Invoice not found.")
        return Response(self.get_serializer(invoice).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = InvoiceCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = cancel_invoice(self.get_object(), actor=request.user, reason=serializer.validated_data["reason"])
        record_audit(
            actor=request.user,
            action="invoices.cancel",
            entity_type="invoice",
            entity_id=invoice.id,
            payload={"amount": str(invoice.amount), "reason": serializer.validated_data["reason"]},
        )
        return Response(self.get_serializer(invoice).data, status=status.HTTP_200_OK)
