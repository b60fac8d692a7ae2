from rest_framework import serializers

from apps.accounts.models import Employee
from apps.settlements.models import DailyReconciliation, ReconciliationStatus, Settlement, SettlementStatus
from apps.transactions.models import Transaction


class SettlementSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    transactions = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = Settlement
        fields = [
            "id",
            "employee",
            "employee_name",
            "expected_amount",
            "received_amount",
            "variance",
            "status",
            "transactions",
            "received_at",
            "received_by",
            "note",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SettlementCreateSerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all(), required=False)
    transactions = serializers.PrimaryKeyRelatedField(
        many=True,
        allow_empty=False,
        queryset=Transaction.objects.all(),
    )


class SettlementVerifySerializer(SettlementCreateSerializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    received_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class SettlementReceiveSerializer(serializers.Serializer):
    received_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class SettlementStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=SettlementStatus.choices)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True)


class DailyReconciliationSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.name", read_only=True)

    class Meta:
        model = DailyReconciliation
        fields = [
            "id",
            "employee",
            "employee_name",
            "date",
            "expected_cash",
            "actual_cash",
            "variance",
            "status",
            "note",
            "verified_at",
            "verified_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReconciliationVerifySerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    date = serializers.DateField()
    actual_cash = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ReconciliationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ReconciliationStatus.choices)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True)


class CloseDaySerializer(serializers.Serializer):
    date = serializers.DateField()


class SettlementQuerySerializer(serializers.Serializer):
    employee = serializers.IntegerField(required=False, min_value=1)
    status = serializers.ChoiceField(choices=SettlementStatus.choices, required=False)


class ReconciliationQuerySerializer(serializers.Serializer):
    employee = serializers.IntegerField(required=False, min_value=1)
    date = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=ReconciliationStatus.choices, required=False)
