from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.settlements.models import DailyReconciliation, Settlement
from apps.shops.models import Shop
from apps.transactions.models import Transaction

User = get_user_model()


class SettlementApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_set", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_set", password="staff123", role="field_staff")
        self.other_staff = User.objects.create_user(username="other_set", password="other123", role="field_staff")
        self.shop = Shop.objects.create(name="Murugan Stores", address="2 Hill Rd", zone="West")
        self.cash_a = self.record("500.00")
        self.cash_b = self.record("300.00")
        self.upi = self.record("400.00", payment_mode="upi")
        self.reversed = self.record("150.00", status="reversed")

    def record(self, amount, payment_mode="cash", employee=None, **fields):
        return Transaction.objects.create(
            shop=self.shop,
            employee=employee or self.staff,
            amount=Decimal(amount),
            payment_mode=payment_mode,
            **fields,
        )

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def open_settlement(self, transactions):
        return self.client.post(
            "/api/v1/settlements/",
            {"transactions": [str(txn.id) for txn in transactions]},
            format="json",
        )

    def test_expected_amount_counts_only_completed_cash(self):
        self.auth_as("staff_set", "staff123")
        response = self.open_settlement([self.cash_a, self.cash_b, self.upi, self.reversed])

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "pending")
        self.assertEqual(response.data["employee"], self.staff.id)
        self.assertEqual(response.data["expected_amount"], "800.00")
        self.assertEqual(len(response.data["transactions"]), 4)

    def test_receiving_exact_amount_marks_received(self):
        self.auth_as("staff_set", "staff123")
        settlement_id = self.open_settlement([self.cash_a, self.cash_b]).data["id"]

        self.auth_as("admin_set", "admin123")
        response = self.client.post(
            f"/api/v1/settlements/{settlement_id}/receive/",
            {"received_amount": "800.00"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "received")
        self.assertEqual(response.data["variance"], "0.00")
        self.assertEqual(response.data["received_by"], self.admin.id)

    def test_receiving_short_amount_marks_discrepancy(self):
        self.auth_as("staff_set", "staff123")
        settlement_id = self.open_settlement([self.cash_a, self.cash_b]).data["id"]

        self.auth_as("admin_set", "admin123")
        response = self.client.post(
            f"/api/v1/settlements/{settlement_id}/receive/",
            {"received_amount": "750.00", "note": "Short by 50"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "discrepancy")
        self.assertEqual(response.data["variance"], "-50.00")
        self.assertEqual(response.data["note"], "Short by 50")

    def test_receive_only_from_pending(self):
        self.auth_as("staff_set", "staff123")
        settlement_id = self.open_settlement([self.cash_a]).data["id"]
        self.auth_as("admin_set", "admin123")
        self.client.post(f"/api/v1/settlements/{settlement_id}/receive/", {"received_amount": "500.00"}, format="json")

        again = self.client.post(
            f"/api/v1/settlements/{settlement_id}/receive/",
            {"received_amount": "400.00"},
            format="json",
        )

        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.data["code"], "invalid_state")
        self.assertEqual(Settlement.objects.get(id=settlement_id).received_amount, Decimal("500.00"))

    def test_transactions_of_another_employee_are_rejected(self):
        foreign = self.record("90.00", employee=self.other_staff)
        self.auth_as("staff_set", "staff123")

        response = self.open_settlement([self.cash_a, foreign])

        self.assertEqual(response.status_code, 400)
        self.assertIn("transactions", response.data["fields"])
        self.assertFalse(Settlement.objects.exists())

    def test_field_staff_cannot_settle_for_someone_else(self):
        self.auth_as("staff_set", "staff123")
        response = self.client.post(
            "/api/v1/settlements/",
            {"employee": self.other_staff.id, "transactions": [str(self.cash_a.id)]},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_verify_creates_and_resolves_in_one_step(self):
        self.auth_as("admin_set", "admin123")
        matched = self.client.post(
            "/api/v1/settlements/verify/",
            {"employee": self.staff.id, "transactions": [str(self.cash_a.id), str(self.cash_b.id)]},
            format="json",
        )
        self.assertEqual(matched.status_code, 201)
        self.assertEqual(matched.data["status"], "received")
        self.assertEqual(matched.data["received_amount"], "800.00")
        self.assertEqual(matched.data["variance"], "0.00")

        short = self.client.post(
            "/api/v1/settlements/verify/",
            {
                "employee": self.staff.id,
                "transactions": [str(self.cash_a.id), str(self.cash_b.id)],
                "received_amount": "750.00",
            },
            format="json",
        )
        self.assertEqual(short.data["status"], "discrepancy")
        self.assertEqual(short.data["variance"], "-50.00")

    def test_admin_can_override_status(self):
        self.auth_as("staff_set", "staff123")
        settlement_id = self.open_settlement([self.cash_a]).data["id"]
        self.auth_as("admin_set", "admin123")
        self.client.post(f"/api/v1/settlements/{settlement_id}/receive/", {"received_amount": "450.00"}, format="json")

        response = self.client.post(
            f"/api/v1/settlements/{settlement_id}/update-status/",
            {"status": "received", "note": "Remaining 50 paid next morning"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "received")
        self.assertEqual(response.data["variance"], "-50.00")
        self.assertEqual(response.data["note"], "Remaining 50 paid next morning")

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_set", "admin123")
        for query in ("employee=abc", "status=lost"):
            response = self.client.get(f"/api/v1/settlements/?{query}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")

    def test_field_staff_only_see_their_own_settlements(self):
        Settlement.objects.create(employee=self.other_staff, expected_amount=Decimal("10.00"))
        self.auth_as("staff_set", "staff123")
        self.open_settlement([self.cash_a])

        listing = self.client.get("/api/v1/settlements/")
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["employee"], self.staff.id)

        self.auth_as("admin_set", "admin123")
        self.assertEqual(self.client.get("/api/v1/settlements/").data["count"], 2)
        self.assertEqual(self.client.get("/api/v1/settlements/?status=pending").data["count"], 2)


class DailyReconciliationApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_rec", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_rec", password="staff123", role="field_staff")
        self.shop = Shop.objects.create(name="Ganga Traders", address="5 Ghat Rd", zone="North")
        for amount in ("600.00", "200.00"):
            Transaction.objects.create(shop=self.shop, employee=self.staff, amount=Decimal(amount), payment_mode="cash")
        Transaction.objects.create(
            shop=self.shop,
            employee=self.staff,
            amount=Decimal("1000.00"),
            payment_mode="cash",
            timestamp=timezone.now() - timedelta(days=1),
        )
        self.today = timezone.localdate()

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def verify(self, actual_cash, **extra):
        payload = {"employee": self.staff.id, "date": self.today.isoformat(), "actual_cash": actual_cash}
        payload.update(extra)
        return self.client.post("/api/v1/reconciliations/verify/", payload, format="json")

    def test_verify_compares_against_cash_in_hand(self):
        self.auth_as("admin_rec", "admin123")
        response = self.verify("800.00")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["expected_cash"], "800.00")
        self.assertEqual(response.data["variance"], "0.00")
        self.assertEqual(response.data["status"], "verified")

    def test_verify_upserts_one_row_per_employee_and_day(self):
        self.auth_as("admin_rec", "admin123")
        first = self.verify("700.00", note="Counted twice")
        self.assertEqual(first.data["status"], "mismatch")
        self.assertEqual(first.data["variance"], "-100.00")

        second = self.verify("800.00")

        self.assertEqual(second.data["id"], first.data["id"])
        self.assertEqual(second.data["status"], "verified")
        self.assertEqual(DailyReconciliation.objects.count(), 1)

    def test_close_day_and_override(self):
        self.auth_as("admin_rec", "admin123")
        reconciliation_id = self.verify("750.00").data["id"]

        override = self.client.post(
            f"/api/v1/reconciliations/{reconciliation_id}/update-status/",
            {"status": "verified", "note": "Approved by manager"},
            format="json",
        )
        self.assertEqual(override.status_code, 200)
        self.assertEqual(override.data["status"], "verified")

        closed = self.client.post("/api/v1/reconciliations/close-day/", {"date": self.today.isoformat()}, format="json")
        self.assertEqual(closed.status_code, 200)
        self.assertEqual(closed.data["closed"], 1)
        self.assertEqual(DailyReconciliation.objects.get(id=reconciliation_id).status, "closed")

        listing = self.client.get(f"/api/v1/reconciliations/?date={self.today.isoformat()}&status=closed")
        self.assertEqual(listing.data["count"], 1)

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_rec", "admin123")
        for query in ("date=garbage", "employee=abc", "status=lost"):
            response = self.client.get(f"/api/v1/reconciliations/?{query}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")

    def test_field_staff_cannot_reconcile(self):
        self.auth_as("staff_rec", "staff123")
        self.assertEqual(self.verify("800.00").status_code, 403)
        self.assertEqual(self.client.get("/api/v1/reconciliations/").status_code, 403)
