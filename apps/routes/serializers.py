from django.utils import timezone
from rest_framework import serializers

from apps.accounts.models import Employee
from apps.routes.models import AssignmentStatus, Route, RouteAssignment
from apps.shops.models import Shop


class RouteShopSerializer(serializers.ModelSerializer):
    class Meta:
        model = Shop
        fields = ["id", "name", "code", "zone", "current_balance"]
        read_only_fields = fields


class RouteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Route
        fields = ["id", "name", "name_lower", "code", "code_lower", "description", "deleted_at", "created_at", "updated_at"]
        read_only_fields = ["id", "name_lower", "code_lower", "deleted_at", "created_at", "updated_at"]
        extra_kwargs = {
            "code": {"required": False},
            "description": {"required": False},
        }

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_code(self, value):
        return value.strip()


class RouteDetailSerializer(RouteSerializer):
    shops = serializers.SerializerMethodField()

    class Meta(RouteSerializer.Meta):
        fields = RouteSerializer.Meta.fields + ["shops"]

    def get_shops(self, obj):
        shops = obj.shops.filter(deleted_at__isnull=True).order_by("name")
        return RouteShopSerializer(shops, many=True).data


class RouteAssignmentSerializer(serializers.ModelSerializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.filter(deleted_at__isnull=True))
    route = serializers.PrimaryKeyRelatedField(queryset=Route.objects.alive())
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    route_name = serializers.CharField(source="route.name", read_only=True)

    class Meta:
        model = RouteAssignment
        fields = [
            "id",
            "employee",
            "employee_name",
            "route",
            "route_name",
            "date",
            "status",
            "assigned_by",
            "assigned_at",
        ]
        read_only_fields = ["id", "status", "assigned_by", "assigned_at"]


class RouteQuerySerializer(serializers.Serializer):
    include_deleted = serializers.BooleanField(required=False, default=False)


class AssignmentQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    employee = serializers.IntegerField(required=False, min_value=1)
    route = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=AssignmentStatus.choices, required=False)


class MineQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)

    def validate(self, attrs):
        attrs.setdefault("date", timezone.localdate())
        return attrs
