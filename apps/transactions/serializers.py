from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from apps.accounts.models import Employee
from apps.shops.models import Shop
from apps.transactions.models import PaymentMode, Transaction, TransactionStatus


class TransactionSerializer(serializers.ModelSerializer):
    shop_name = serializers.CharField(source="shop.name", read_only=True)
    employee_name = serializers.CharField(source="employee.name", read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "shop",
            "shop_name",
            "employee",
            "employee_name",
            "amount",
            "payment_mode",
            "reference",
            "latitude",
            "longitude",
            "timestamp",
            "status",
            "is_verified",
            "verified_at",
            "verified_by",
            "reversed_at",
            "reversed_by",
            "reverse_reason",
        ]
        read_only_fields = fields


class CollectCashSerializer(serializers.Serializer):
    shop = serializers.PrimaryKeyRelatedField(queryset=Shop.objects.all())
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.alive(), required=False)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices)
    reference = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True, default=None)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True, default=None)


class ReverseSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class HandoverVerifySerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())


class TransactionQuerySerializer(serializers.Serializer):
    employee = serializers.IntegerField(required=False, min_value=1)
    shop = serializers.UUIDField(required=False)
    date = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=TransactionStatus.choices, required=False)
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, required=False)
    is_verified = serializers.BooleanField(required=False, allow_null=True)


class ReportQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)

    def validate(self, attrs):
        attrs.setdefault("date", timezone.localdate())
        return attrs


class CashQuerySerializer(ReportQuerySerializer):
    employee = serializers.IntegerField(required=False, min_value=1)
