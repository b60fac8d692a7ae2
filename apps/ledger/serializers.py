from rest_framework import serializers

from apps.ledger.models import BalanceAuditLog


class BalanceAuditLogSerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source="changed_by.name", read_only=True, default=None)

    class Meta:
        model = BalanceAuditLog
        fields = [
            "id",
            "shop",
            "previous_balance",
            "new_balance",
            "change_amount",
            "change_type",
            "reference_type",
            "reference_id",
            "changed_by",
            "changed_by_name",
            "note",
            "created_at",
        ]
        read_only_fields = fields
