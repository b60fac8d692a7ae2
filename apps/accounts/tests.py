import base64
import json
import time
from io import StringIO
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APITestCase

from apps.accounts.webhooks import WebhookVerificationError, sign_payload, verify_webhook
from apps.audit.models import AuditLog

User = get_user_model()

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"psbook-webhook-test-secret").decode("ascii")


def invitation_response(status_code=200, payload=None):
    response = mock.Mock()
    response.ok = status_code < 400
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {"id": "inv_123"}
    return response


class EmployeeApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_emp", password="admin123", role="admin")
        self.root = User.objects.create_user(username="root_emp", password="root12345", role="super_admin")
        self.staff = User.objects.create_user(
            username="staff_emp",
            password="staff123",
            role="field_staff",
            email="Staff@Example.com",
        )

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    @override_settings(CLERK_SECRET_KEY="sk_test_123")
    def test_create_employee_sends_invitation(self):
        self.auth_as("admin_emp", "admin123")
        with mock.patch("apps.accounts.services.requests.post", return_value=invitation_response()) as post:
            response = self.client.post(
                "/api/v1/employees/",
                {"name": "Ravi Kumar", "email": "Ravi@Example.com ", "role": "field_staff"},
                format="json",
            )

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["invitation_id"], "inv_123")
        employee = User.objects.get(pk=response.data["employee_id"])
        self.assertEqual(employee.email, "ravi@example.com")
        self.assertIsNone(employee.external_user_id)
        self.assertFalse(employee.has_usable_password())
        _, kwargs = post.call_args
        self.assertEqual(kwargs["json"], {"email_address": "ravi@example.com", "ignore_existing": True})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk_test_123")
        self.assertTrue(AuditLog.objects.filter(action="employees.create", entity_id=str(employee.pk)).exists())

    def test_create_employee_keeps_record_when_invitation_is_not_configured(self):
        self.auth_as("admin_emp", "admin123")
        response = self.client.post(
            "/api/v1/employees/",
            {"name": "Meena", "email": "meena@example.com", "role": "field_staff"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data["success"])
        self.assertIn("invitation", response.data["error"])
        self.assertTrue(User.objects.filter(email="meena@example.com").exists())

    @override_settings(CLERK_SECRET_KEY="sk_test_123")
    def test_create_employee_reports_provider_rejection(self):
        self.auth_as("admin_emp", "admin123")
        rejected = invitation_response(422, {"errors": [{"message": "email address is invalid"}]})
        with mock.patch("apps.accounts.services.requests.post", return_value=rejected):
            response = self.client.post(
                "/api/v1/employees/",
                {"name": "Arun", "email": "arun@example.com"},
                format="json",
            )

        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data["success"])
        self.assertIn("email address is invalid", response.data["error"])

    @override_settings(CLERK_SECRET_KEY="sk_test_123")
    def test_create_employee_survives_network_failure(self):
        self.auth_as("admin_emp", "admin123")
        with mock.patch("apps.accounts.services.requests.post", side_effect=requests.ConnectionError("down")):
            response = self.client.post(
                "/api/v1/employees/",
                {"name": "Kiran", "email": "kiran@example.com"},
                format="json",
            )

        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data["success"])
        self.assertTrue(User.objects.filter(email="kiran@example.com").exists())

    def test_create_employee_rejects_duplicate_email_case_insensitively(self):
        self.auth_as("admin_emp", "admin123")
        response = self.client.post(
            "/api/v1/employees/",
            {"name": "Other", "email": "STAFF@example.com"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate")

    def test_field_staff_cannot_manage_employees(self):
        self.auth_as("staff_emp", "staff123")
        response = self.client.get("/api/v1/employees/")
        self.assertEqual(response.status_code, 403)

        me = self.client.get("/api/v1/employees/me/")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.data["email"], "staff@example.com")
        self.assertEqual(me.data["role"], "field_staff")

    def test_super_admin_is_protected(self):
        self.auth_as("admin_emp", "admin123")

        update = self.client.patch(f"/api/v1/employees/{self.root.id}/", {"name": "Renamed"}, format="json")
        self.assertEqual(update.status_code, 400)
        self.assertEqual(update.data["code"], "invalid_state")

        toggle = self.client.post(f"/api/v1/employees/{self.root.id}/toggle-status/")
        self.assertEqual(toggle.status_code, 400)

        delete = self.client.delete(f"/api/v1/employees/{self.root.id}/")
        self.assertEqual(delete.status_code, 400)

        self.root.refresh_from_db()
        self.assertNotEqual(self.root.name, "Renamed")
        self.assertIsNone(self.root.deleted_at)

    def test_toggle_status_and_soft_delete_block_login(self):
        self.auth_as("admin_emp", "admin123")

        toggle = self.client.post(f"/api/v1/employees/{self.staff.id}/toggle-status/")
        self.assertEqual(toggle.status_code, 200)
        self.assertEqual(toggle.data["status"], "inactive")
        self.staff.refresh_from_db()
        self.assertFalse(self.staff.is_active)

        toggle = self.client.post(f"/api/v1/employees/{self.staff.id}/toggle-status/")
        self.assertEqual(toggle.data["status"], "active")

        delete = self.client.delete(f"/api/v1/employees/{self.staff.id}/")
        self.assertEqual(delete.status_code, 204)
        self.staff.refresh_from_db()
        self.assertIsNotNone(self.staff.deleted_at)
        self.assertFalse(self.staff.is_active)

        listing = self.client.get("/api/v1/employees/")
        ids = {row["id"] for row in listing.data["results"]}
        self.assertNotIn(self.staff.id, ids)

        listing = self.client.get("/api/v1/employees/?include_deleted=true")
        ids = {row["id"] for row in listing.data["results"]}
        self.assertIn(self.staff.id, ids)

        login = self.client.post(
            "/api/v1/auth/token/",
            {"username": "staff_emp", "password": "staff123"},
            format="json",
        )
        self.assertEqual(login.status_code, 401)

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_emp", "admin123")
        for query in ("status=retired", "role=owner", "include_deleted=perhaps"):
            response = self.client.get(f"/api/v1/employees/?{query}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")

    def test_lookup_by_external_id(self):
        self.staff.external_user_id = "user_staff"
        self.staff.save(update_fields=["external_user_id"])
        self.auth_as("admin_emp", "admin123")

        response = self.client.get("/api/v1/employees/by-external-id/user_staff/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["id"], self.staff.id)
        self.assertTrue(response.data["is_linked"])

        missing = self.client.get("/api/v1/employees/by-external-id/user_missing/")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.data["code"], "not_found")

    def test_resend_invitation_rejects_linked_employee(self):
        self.staff.external_user_id = "user_staff"
        self.staff.save(update_fields=["external_user_id"])
        self.auth_as("admin_emp", "admin123")

        response = self.client.post(f"/api/v1/employees/{self.staff.id}/resend-invitation/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate")

    def test_resend_invitation_requires_configuration(self):
        self.auth_as("admin_emp", "admin123")
        response = self.client.post(f"/api/v1/employees/{self.staff.id}/resend-invitation/")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "configuration_missing")

    def test_email_change_moves_login_name_and_frees_old_address(self):
        self.auth_as("admin_emp", "admin123")
        created = self.client.post(
            "/api/v1/employees/",
            {"name": "Anil", "email": "anil@example.com", "role": "field_staff"},
            format="json",
        )
        employee_id = created.data["employee_id"]

        updated = self.client.patch(f"/api/v1/employees/{employee_id}/", {"email": "anil.k@example.com"}, format="json")
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(User.objects.get(pk=employee_id).username, "anil.k@example.com")

        reused = self.client.post(
            "/api/v1/employees/",
            {"name": "Anil Two", "email": "anil@example.com", "role": "field_staff"},
            format="json",
        )
        self.assertEqual(reused.status_code, 201)

    def test_address_used_as_login_name_counts_as_taken(self):
        User.objects.create_user(username="legacy@example.com", password="legacy123", email="other@example.com")
        self.auth_as("admin_emp", "admin123")

        response = self.client.post(
            "/api/v1/employees/",
            {"name": "Legacy", "email": "Legacy@example.com", "role": "field_staff"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate")


class WebhookSignatureTests(SimpleTestCase):
    def headers_for(self, payload, timestamp=None, message_id="msg_1"):
        timestamp = str(int(time.time()) if timestamp is None else timestamp)
        signature = sign_payload(WEBHOOK_SECRET, message_id, timestamp, payload)
        return {"svix-id": message_id, "svix-timestamp": timestamp, "svix-signature": f"v1,{signature}"}

    def test_valid_signature_is_accepted(self):
        payload = b'{"type": "user.created"}'
        self.assertTrue(verify_webhook(WEBHOOK_SECRET, self.headers_for(payload), payload))

    def test_any_listed_signature_may_match(self):
        payload = b'{"type": "user.created"}'
        headers = self.headers_for(payload)
        headers["svix-signature"] = f"v1,bm90LXRoZS1yaWdodC1vbmU= {headers['svix-signature']}"
        self.assertTrue(verify_webhook(WEBHOOK_SECRET, headers, payload))

    def test_tampered_payload_is_rejected(self):
        headers = self.headers_for(b'{"type": "user.created"}')
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(WEBHOOK_SECRET, headers, b'{"type": "user.deleted"}')

    def test_stale_timestamp_is_rejected(self):
        payload = b"{}"
        headers = self.headers_for(payload, timestamp=int(time.time()) - 3600)
        with self.assertRaises(WebhookVerificationError):
            verify_webhook(WEBHOOK_SECRET, headers, payload, tolerance_seconds=300)


@override_settings(CLERK_WEBHOOK_SECRET=WEBHOOK_SECRET)
class IdentityWebhookTests(APITestCase):
    def setUp(self):
        self.placeholder = User.objects.create_user(username="new.hire@example.com", email="new.hire@example.com")

    def user_created_event(self, user_id="user_abc", email="New.Hire@example.com"):
        return {
            "type": "user.created",
            "data": {
                "id": user_id,
                "primary_email_address_id": "idn_2",
                "email_addresses": [
                    {"id": "idn_1", "email_address": "secondary@example.com"},
                    {"id": "idn_2", "email_address": email},
                ],
            },
        }

    def deliver(self, event, secret=WEBHOOK_SECRET, signature=None):
        body = json.dumps(event)
        timestamp = str(int(time.time()))
        signature = signature or sign_payload(secret, "msg_1", timestamp, body)
        return self.client.post(
            "/clerk-webhook",
            data=body,
            content_type="application/json",
            HTTP_SVIX_ID="msg_1",
            HTTP_SVIX_TIMESTAMP=timestamp,
            HTTP_SVIX_SIGNATURE=f"v1,{signature}",
        )

    def test_user_created_links_placeholder_by_primary_email(self):
        response = self.deliver(self.user_created_event())

        self.assertEqual(response.status_code, 200)
        self.placeholder.refresh_from_db()
        self.assertEqual(self.placeholder.external_user_id, "user_abc")

    def test_already_linked_employee_is_left_alone(self):
        self.placeholder.external_user_id = "user_old"
        self.placeholder.save(update_fields=["external_user_id"])

        response = self.deliver(self.user_created_event(user_id="user_new"))

        self.assertEqual(response.status_code, 200)
        self.placeholder.refresh_from_db()
        self.assertEqual(self.placeholder.external_user_id, "user_old")

    def test_unknown_email_is_acknowledged(self):
        response = self.deliver(self.user_created_event(email="stranger@example.com"))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(external_user_id="user_abc").exists())

    def test_other_events_are_acknowledged(self):
        response = self.deliver({"type": "session.created", "data": {}})
        self.assertEqual(response.status_code, 200)

    def test_signed_body_that_is_not_an_object_is_acknowledged(self):
        self.assertEqual(self.deliver([]).status_code, 200)
        self.assertEqual(self.deliver({"type": "user.created", "data": "oops"}).status_code, 200)
        self.placeholder.refresh_from_db()
        self.assertIsNone(self.placeholder.external_user_id)

    def test_bad_signature_is_rejected(self):
        other_secret = "whsec_" + base64.b64encode(b"some-other-secret").decode("ascii")
        response = self.deliver(self.user_created_event(), secret=other_secret)

        self.assertEqual(response.status_code, 400)
        self.placeholder.refresh_from_db()
        self.assertIsNone(self.placeholder.external_user_id)

    def test_missing_headers_are_rejected(self):
        response = self.client.post(
            "/clerk-webhook",
            data=json.dumps(self.user_created_event()),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    @override_settings(CLERK_WEBHOOK_SECRET="")
    def test_missing_secret_is_a_server_error(self):
        response = self.deliver(self.user_created_event())
        self.assertEqual(response.status_code, 500)


class SeedRolesCommandTests(TestCase):
    def test_creates_groups_and_syncs_employee_roles(self):
        staff = User.objects.create_user(username="seed_staff", password="staff123", role="field_staff")
        staff.groups.add(Group.objects.create(name="admin"))

        out = StringIO()
        call_command("seed_roles", "--sync-employees", stdout=out)

        self.assertEqual(
            set(Group.objects.values_list("name", flat=True)),
            {"field_staff", "admin", "super_admin"},
        )
        self.assertEqual(list(staff.groups.values_list("name", flat=True)), ["field_staff"])
        self.assertIn("Employees synced: 1", out.getvalue())

        out = StringIO()
        call_command("seed_roles", "--sync-employees", stdout=out)
        self.assertIn("admin: exists", out.getvalue())
        self.assertIn("Employees synced: 0", out.getvalue())
