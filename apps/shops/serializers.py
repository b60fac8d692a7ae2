from rest_framework import serializers

from apps.routes.models import Route
from apps.shops.models import Shop


class ShopSerializer(serializers.ModelSerializer):
    route = serializers.PrimaryKeyRelatedField(queryset=Route.objects.alive(), required=False, allow_null=True)
    route_name = serializers.CharField(source="route.name", read_only=True, default=None)

    class Meta:
        model = Shop
        fields = [
            "id",
            "name",
            "code",
            "address",
            "phone",
            "zone",
            "current_balance",
            "route",
            "route_name",
            "last_collection_date",
            "deleted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "current_balance", "last_collection_date", "deleted_at", "created_at", "updated_at"]
        extra_kwargs = {
            "code": {"required": False},
            "phone": {"required": False},
        }

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_zone(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("zone is required")
        return value


class ShopCreateSerializer(ShopSerializer):
    current_balance = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)


class CorrectionSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    note = serializers.CharField(max_length=255)

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("amount must not be zero")
        return value

    def validate_note(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("note is required")
        return value


class ShopQuerySerializer(serializers.Serializer):
    include_deleted = serializers.BooleanField(required=False, default=False)
    zone = serializers.CharField(required=False, allow_blank=True)
    route = serializers.UUIDField(required=False)
    q = serializers.CharField(required=False, allow_blank=True)
