from rest_framework import serializers

from apps.accounts.models import Employee, EmployeeRole, EmployeeStatus
from apps.accounts.services import email_taken


class EmployeeSerializer(serializers.ModelSerializer):
    is_linked = serializers.SerializerMethodField()

    class Meta:
        model = Employee
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "role",
            "status",
            "external_user_id",
            "is_linked",
            "deleted_at",
            "date_joined",
        ]
        read_only_fields = ["id", "status", "external_user_id", "is_linked", "deleted_at", "date_joined"]

    def get_is_linked(self, obj):
        return bool(obj.external_user_id)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_email(self, value):
        value = value.strip().lower()
        exclude_pk = self.instance.pk if self.instance else None
        if email_taken(value, exclude_pk=exclude_pk):
            raise serializers.ValidationError("An employee with this email already exists.")
        return value


class EmployeeInviteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    role = serializers.ChoiceField(choices=EmployeeRole.choices, default=EmployeeRole.FIELD_STAFF)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value


class EmployeeQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EmployeeStatus.choices, required=False)
    role = serializers.ChoiceField(choices=EmployeeRole.choices, required=False)
    include_deleted = serializers.BooleanField(required=False, default=False)
