from decimal import Decimal

from rest_framework import serializers

from apps.invoices.models import Invoice, InvoiceStatus
from apps.shops.models import Shop


class InvoiceSerializer(serializers.ModelSerializer):
    shop = serializers.PrimaryKeyRelatedField(queryset=Shop.objects.all())
    shop_name = serializers.CharField(source="shop.name", read_only=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))

    class Meta:
        model = Invoice
        fields = [
            "id",
            "shop",
            "shop_name",
            "amount",
            "invoice_number",
            "invoice_date",
            "reference",
            "note",
            "status",
            "created_by",
            "cancelled_at",
            "cancelled_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "status", "created_by", "cancelled_at", "cancelled_by", "created_at", "updated_at"]
        extra_kwargs = {
            "reference": {"required": False},
            "note": {"required": False},
        }

    def validate_invoice_number(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("invoice_number is required")
        return value

    def validate_shop(self, value):
        if self.instance is not None and value != self.instance.shop:
            raise serializers.ValidationError("The shop of an invoice cannot be changed.")
        return value


class InvoiceCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class InvoiceQuerySerializer(serializers.Serializer):
    shop = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=InvoiceStatus.choices, required=False)
    q = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
