import json
import logging

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.models import Employee, EmployeeStatus
from apps.accounts.serializers import EmployeeInviteSerializer, EmployeeQuerySerializer, EmployeeSerializer
from apps.accounts.services import create_and_invite_employee, link_external_identity, send_invitation
from apps.accounts.webhooks import SIGNATURE_HEADERS, WebhookVerificationError, verify_webhook
from apps.audit.services import record_audit
from apps.common.exceptions import Duplicate, InvalidState
from apps.common.permissions import RolePermission

logger = logging.getLogger(__name__)


class EmployeeViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Employee.objects.all()
    serializer_class = EmployeeSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["employees.view"],
        "retrieve": ["employees.view"],
        "by_external_id": ["employees.view"],
        "create": ["employees.manage"],
        "partial_update": ["employees.manage"],
        "update": ["employees.manage"],
        "destroy": ["employees.manage"],
        "toggle_status": ["employees.manage"],
        "resend_invitation": ["employees.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            return queryset
        query_serializer = EmployeeQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("role"):
            queryset = queryset.filter(role=params["role"])
        if not params["include_deleted"]:
            queryset = queryset.filter(deleted_at__isnull=True)
        return queryset.order_by("name")

    def create(self, request, *args, **kwargs):
        serializer = EmployeeInviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = create_and_invite_employee(**serializer.validated_data)
        record_audit(
            actor=request.user,
            action="employees.create",
            entity_type="employee",
            entity_id=result["employee_id"],
            payload={
                "email": serializer.validated_data["email"].lower(),
                "role": serializer.validated_data["role"],
                "invited": result["success"],
            },
        )
        return Response(result, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def me(self, request):
        return Response(self.get_serializer(request.user).data)

    @action(detail=False, methods=["get"], url_path=r"by-external-id/(?P<external_user_id>[^/]+)")
    def by_external_id(self, request, external_user_id=None):
        employee = get_object_or_404(Employee, external_user_id=external_user_id)
        return Response(self.get_serializer(employee).data)

    def perform_update(self, serializer):
        employee = serializer.instance
        if employee.is_protected:
            raise InvalidState("Super admin users cannot be modified.")
        before = {"name": employee.name, "email": employee.email, "phone": employee.phone, "role": employee.role}
        employee = serializer.save()
        if employee.email and employee.username == before["email"] and employee.email != before["email"]:
            employee.username = employee.email
            employee.save(update_fields=["username"])
        after = {"name": employee.name, "email": employee.email, "phone": employee.phone, "role": employee.role}
        record_audit(
            actor=self.request.user,
            action="employees.update",
            entity_type="employee",
            entity_id=employee.id,
            payload={"before": before, "after": after},
        )

    def perform_destroy(self, instance):
        if instance.is_protected:
            raise InvalidState("Super admin users cannot be deleted.")
        if instance.deleted_at is not None:
            return
        instance.soft_delete()
        record_audit(
            actor=self.request.user,
            action="employees.delete",
            entity_type="employee",
            entity_id=instance.id,
            payload={"email": instance.email},
        )

    @action(detail=True, methods=["post"], url_path="toggle-status")
    def toggle_status(self, request, pk=None):
        employee = self.get_object()
        if employee.is_protected:
            raise InvalidState("Super admin users cannot be deactivated.")
        employee.status = EmployeeStatus.INACTIVE if employee.status == EmployeeStatus.ACTIVE else EmployeeStatus.ACTIVE
        employee.save(update_fields=["status"])
        record_audit(
            actor=request.user,
            action="employees.toggle_status",
            entity_type="employee",
            entity_id=employee.id,
            payload={"status": employee.status},
        )
        return Response(self.get_serializer(employee).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="resend-invitation")
    def resend_invitation(self, request, pk=None):
        employee = self.get_object()
        if employee.external_user_id:
            raise Duplicate("Employee is already linked to an account.")
        invitation_id = send_invitation(employee.email)
        return Response({"success": True, "invitation_id": invitation_id}, status=status.HTTP_200_OK)


class IdentityWebhookView(APIView):
    """Receives signed identity-provider events and links new accounts to placeholder employees.

    Anything other than a missing header, a bad signature or a missing secret is answered with
    200 so the provider does not keep retrying deliveries that can never succeed.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        payload = request.body
        headers = {name: request.headers.get(name) for name in SIGNATURE_HEADERS}
        if not all(headers.values()):
            logger.warning("Webhook: missing signature headers")
            return Response({"detail": "Missing signature headers"}, status=status.HTTP_400_BAD_REQUEST)

        secret = settings.CLERK_WEBHOOK_SECRET
        if not secret:
            logger.error("Webhook: CLERK_WEBHOOK_SECRET not configured")
            return Response({"detail": "Webhook secret not configured"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        try:
            verify_webhook(secret, headers, payload, tolerance_seconds=settings.CLERK_WEBHOOK_TOLERANCE_SECONDS)
            event = json.loads(payload)
        except (WebhookVerificationError, ValueError) as exc:
            logger.warning("Webhook: verification failed: %s", exc)
            return Response({"detail": "Webhook verification failed"}, status=status.HTTP_400_BAD_REQUEST)

        if not isinstance(event, dict):
            logger.warning("Webhook: ignoring payload that is not a JSON object")
            return Response({"detail": "Webhook ignored"}, status=status.HTTP_200_OK)

        if event.get("type") == "user.created":
            data = event.get("data")
            if not isinstance(data, dict):
                data = {}
            email = primary_email(data)
            if email and data.get("id"):
                logger.info("Webhook: processing user.created for %s", email)
                link_external_identity(email=email, external_user_id=data.get("id"))
            else:
                logger.warning("Webhook: no email found for user %s", data.get("id"))

        return Response({"detail": "Webhook processed"}, status=status.HTTP_200_OK)


def primary_email(data):
    addresses = [address for address in data.get("email_addresses") or [] if isinstance(address, dict)]
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if address.get("id") == primary_id and address.get("email_address"):
            return address["email_address"]
    if addresses:
        return addresses[0].get("email_address")
    return None
