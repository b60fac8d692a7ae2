from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog

User = get_user_model()


class AuditLogApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_audit", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_audit", password="staff123", role="field_staff")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_mutations_leave_an_audit_trail(self):
        self.auth_as("admin_audit", "admin123")
        route_id = self.client.post("/api/v1/routes/", {"name": "West"}, format="json").data["id"]
        self.client.delete(f"/api/v1/routes/{route_id}/")

        response = self.client.get(f"/api/v1/audit-logs/?entity_type=route&entity_id={route_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual({row["action"] for row in response.data["results"]}, {"routes.create", "routes.delete"})
        self.assertEqual(AuditLog.objects.filter(action="routes.create").first().actor, self.admin)

    def test_field_staff_cannot_read_audit_logs(self):
        self.auth_as("staff_audit", "staff123")
        response = self.client.get("/api/v1/audit-logs/")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "permission_denied")
