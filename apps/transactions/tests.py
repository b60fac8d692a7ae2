from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.ledger.models import BalanceAuditLog, ChangeType
from apps.ledger.services import apply_balance_change, ledger_drift
from apps.routes.models import Route, RouteAssignment
from apps.shops.models import Shop
from apps.transactions.models import Transaction

User = get_user_model()


class TransactionApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_txn", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_txn", password="staff123", role="field_staff")
        self.other_staff = User.objects.create_user(username="other_txn", password="other123", role="field_staff")
        self.shop = Shop.objects.create(name="Sri Sai Agencies", address="7 Bazaar St", zone="Central")
        self.shop, _ = apply_balance_change(
            shop=self.shop,
            change_amount=Decimal("5000.00"),
            change_type=ChangeType.ADJUSTMENT,
            note="Opening balance",
        )

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def collect(self, amount, payment_mode="cash", **extra):
        payload = {"shop": str(self.shop.id), "amount": amount, "payment_mode": payment_mode}
        payload.update(extra)
        return self.client.post("/api/v1/transactions/collect-cash/", payload, format="json")

    def balance(self):
        self.shop.refresh_from_db()
        return self.shop.current_balance

    def test_collection_invoice_and_reversal_keep_ledger_in_step(self):
        self.auth_as("staff_txn", "staff123")
        collected = self.collect("2000.00", reference="", latitude="12.971599", longitude="77.594566")
        self.assertEqual(collected.status_code, 201)
        self.assertEqual(collected.data["employee"], self.staff.id)
        self.assertEqual(collected.data["status"], "completed")
        self.assertEqual(self.balance(), Decimal("3000.00"))
        collection_entry = BalanceAuditLog.objects.get(reference_id=collected.data["id"])
        self.assertEqual(collection_entry.change_type, "collection")
        self.assertEqual(collection_entry.change_amount, Decimal("-2000.00"))

        self.auth_as("admin_txn", "admin123")
        invoice = self.client.post(
            "/api/v1/invoices/",
            {
                "shop": str(self.shop.id),
                "amount": "1500.00",
                "invoice_number": "INV-1001",
                "invoice_date": timezone.localdate().isoformat(),
            },
            format="json",
        )
        self.assertEqual(invoice.status_code, 201)
        self.assertEqual(self.balance(), Decimal("4500.00"))
        invoice_entry = BalanceAuditLog.objects.get(reference_id=invoice.data["id"])
        self.assertEqual(invoice_entry.change_type, "invoice")
        self.assertEqual(invoice_entry.change_amount, Decimal("1500.00"))

        reversed_ = self.client.post(
            f"/api/v1/transactions/{collected.data['id']}/reverse/",
            {"reason": "Wrong shop"},
            format="json",
        )
        self.assertEqual(reversed_.status_code, 200)
        self.assertEqual(reversed_.data["status"], "reversed")
        self.assertEqual(reversed_.data["reversed_by"], self.admin.id)
        self.assertEqual(self.balance(), Decimal("6500.00"))
        reversal_entry = BalanceAuditLog.objects.get(change_type="reversal")
        self.assertEqual(reversal_entry.change_amount, Decimal("2000.00"))
        self.assertEqual(reversal_entry.reference_id, collected.data["id"])

        self.assertEqual(BalanceAuditLog.objects.filter(shop=self.shop).count(), 4)
        self.assertEqual(ledger_drift(self.shop), Decimal("0.00"))

    def test_second_reversal_is_rejected_without_balance_change(self):
        self.auth_as("admin_txn", "admin123")
        txn_id = self.collect("1000.00", employee=self.staff.id).data["id"]
        first = self.client.post(f"/api/v1/transactions/{txn_id}/reverse/", {}, format="json")
        self.assertEqual(first.status_code, 200)
        balance_after_first = self.balance()

        second = self.client.post(f"/api/v1/transactions/{txn_id}/reverse/", {}, format="json")

        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.data["code"], "invalid_state")
        self.assertEqual(self.balance(), balance_after_first)
        self.assertEqual(BalanceAuditLog.objects.filter(change_type="reversal").count(), 1)

    def test_over_collection_clamps_balance_at_zero(self):
        self.auth_as("staff_txn", "staff123")
        with self.assertLogs("apps.ledger.services", level="WARNING"):
            response = self.collect("7000.00")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["amount"], "7000.00")
        self.assertEqual(self.balance(), Decimal("0.00"))
        entry = BalanceAuditLog.objects.get(reference_id=response.data["id"])
        self.assertEqual(entry.change_amount, Decimal("-5000.00"))
        self.assertIn("7000.00", entry.note)
        self.assertEqual(ledger_drift(self.shop), Decimal("0.00"))

    def test_collection_sets_last_collection_date(self):
        Shop.objects.filter(pk=self.shop.pk).update(updated_at=timezone.now() - timedelta(days=3))
        self.auth_as("staff_txn", "staff123")
        response = self.collect("100.00")
        self.shop.refresh_from_db()
        self.assertIsNotNone(self.shop.last_collection_date)
        self.assertEqual(
            self.shop.last_collection_date,
            Transaction.objects.get(id=response.data["id"]).timestamp,
        )
        self.assertGreaterEqual(self.shop.updated_at, self.shop.last_collection_date)

    def test_collection_validates_input(self):
        self.auth_as("staff_txn", "staff123")
        response = self.collect("-5.00", payment_mode="card")

        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", response.data["fields"])
        self.assertIn("payment_mode", response.data["fields"])
        self.assertEqual(self.balance(), Decimal("5000.00"))

    def test_collection_from_deleted_shop_is_rejected(self):
        Shop.objects.filter(pk=self.shop.pk).update(deleted_at=timezone.now())
        self.auth_as("staff_txn", "staff123")

        response = self.collect("100.00")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_state")
        self.assertFalse(Transaction.objects.exists())

    def test_field_staff_collect_only_for_themselves(self):
        self.auth_as("staff_txn", "staff123")
        response = self.collect("100.00", employee=self.other_staff.id)
        self.assertEqual(response.status_code, 403)

        reverse = self.client.post(
            f"/api/v1/transactions/{self.collect('100.00').data['id']}/reverse/",
            {},
            format="json",
        )
        self.assertEqual(reverse.status_code, 403)

    def test_field_staff_only_see_their_own_transactions(self):
        self.auth_as("admin_txn", "admin123")
        self.collect("100.00", employee=self.staff.id)
        self.collect("200.00", employee=self.other_staff.id)

        self.auth_as("staff_txn", "staff123")
        listing = self.client.get("/api/v1/transactions/")
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["amount"], "100.00")

        self.auth_as("admin_txn", "admin123")
        listing = self.client.get(f"/api/v1/transactions/?employee={self.other_staff.id}")
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["amount"], "200.00")

    def test_date_filter_matches_local_calendar_day(self):
        self.auth_as("admin_txn", "admin123")
        today_id = self.collect("100.00", employee=self.staff.id).data["id"]
        old_id = self.collect("200.00", employee=self.staff.id).data["id"]
        Transaction.objects.filter(id=old_id).update(timestamp=timezone.now() - timedelta(days=2))

        today = timezone.localdate()
        response = self.client.get(f"/api/v1/transactions/?date={today.isoformat()}")
        self.assertEqual([row["id"] for row in response.data["results"]], [today_id])

        invalid = self.client.get("/api/v1/transactions/?date=12-31-2024")
        self.assertEqual(invalid.status_code, 400)

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_txn", "admin123")
        for field, value in (
            ("shop", "not-a-uuid"),
            ("employee", "abc"),
            ("status", "lost"),
            ("payment_mode", "gold"),
            ("is_verified", "maybe"),
        ):
            response = self.client.get(f"/api/v1/transactions/?{field}={value}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")
            self.assertIn(field, response.data["fields"])

        self.assertEqual(self.client.get("/api/v1/transactions/cash-in-hand/?date=garbage").status_code, 400)
        self.assertEqual(self.client.get("/api/v1/transactions/cash-in-bag/?employee=x").status_code, 400)
        self.assertEqual(self.client.get("/api/v1/transactions/?is_verified=false").status_code, 200)

    def test_cash_in_hand_counts_same_day_completed_cash(self):
        self.auth_as("staff_txn", "staff123")
        self.collect("400.00")
        self.collect("250.00")
        self.collect("999.00", payment_mode="upi", reference="UTR123")
        old_id = self.collect("50.00").data["id"]
        Transaction.objects.filter(id=old_id).update(timestamp=timezone.now() - timedelta(days=1))

        response = self.client.get("/api/v1/transactions/cash-in-hand/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["employee_id"], self.staff.id)
        self.assertEqual(response.data["total"], Decimal("650.00"))
        self.assertEqual(response.data["count"], 2)

        in_bag = self.client.get("/api/v1/transactions/cash-in-bag/")
        self.assertEqual(in_bag.data["total"], Decimal("700.00"))
        self.assertEqual(in_bag.data["count"], 3)

    def test_handover_verification_empties_the_bag(self):
        self.auth_as("admin_txn", "admin123")
        self.collect("2000.00", employee=self.staff.id)
        self.collect("500.00", payment_mode="upi", employee=self.staff.id)
        self.collect("300.00", payment_mode="cheque", employee=self.other_staff.id)

        pending = self.client.get("/api/v1/handovers/pending/")
        self.assertEqual(pending.status_code, 200)
        self.assertEqual(len(pending.data), 1)
        row = pending.data[0]
        self.assertEqual(row["employee_id"], self.staff.id)
        self.assertEqual(row["total_amount"], Decimal("2500.00"))
        self.assertEqual(row["cash_amount"], Decimal("2000.00"))
        self.assertEqual(row["transaction_count"], 2)

        verified = self.client.post("/api/v1/handovers/verify/", {"employee": self.staff.id}, format="json")
        self.assertEqual(verified.status_code, 200)
        self.assertEqual(verified.data["verified"], 1)
        self.assertEqual(verified.data["amount"], Decimal("2000.00"))
        txn = Transaction.objects.get(employee=self.staff, payment_mode="cash")
        self.assertTrue(txn.is_verified)
        self.assertEqual(txn.verified_by, self.admin)

        self.assertEqual(self.client.get("/api/v1/handovers/pending/").data, [])
        again = self.client.post("/api/v1/handovers/verify/", {"employee": self.staff.id}, format="json")
        self.assertEqual(again.data["verified"], 0)

    def test_field_staff_cannot_verify_handovers(self):
        self.auth_as("staff_txn", "staff123")
        response = self.client.post("/api/v1/handovers/verify/", {"employee": self.staff.id}, format="json")
        self.assertEqual(response.status_code, 403)


class ReportApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_rep", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_rep", password="staff123", role="field_staff", first_name="Ravi")
        self.idle_staff = User.objects.create_user(username="idle_rep", password="idle123", role="field_staff")
        self.shop = Shop.objects.create(name="Kaveri", address="9 River Rd", zone="North")
        self.route = Route.objects.create(name="North Loop", code="NL")
        RouteAssignment.objects.create(employee=self.staff, route=self.route, date=timezone.localdate())

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def record(self, amount, payment_mode="cash", **fields):
        return Transaction.objects.create(
            shop=self.shop,
            employee=self.staff,
            amount=Decimal(amount),
            payment_mode=payment_mode,
            **fields,
        )

    def test_daily_summary_splits_cash_and_digital(self):
        self.record("2000.00")
        self.record("500.00", payment_mode="upi")
        self.record("250.00", payment_mode="cheque")
        self.record("900.00", status="reversed")
        self.record("100.00", timestamp=timezone.now() - timedelta(days=3))
        self.auth_as("admin_rep", "admin123")

        response = self.client.get("/api/v1/reports/daily-summary/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_collected"], Decimal("2750.00"))
        self.assertEqual(response.data["cash_in_hand"], Decimal("2000.00"))
        self.assertEqual(response.data["digital_payments"], Decimal("750.00"))
        self.assertEqual(response.data["transaction_count"], 3)

    def test_employee_status_reflects_recent_activity(self):
        self.record("300.00", timestamp=timezone.now() - timedelta(minutes=1))
        self.auth_as("admin_rep", "admin123")

        response = self.client.get("/api/v1/reports/employee-status/")

        self.assertEqual(response.status_code, 200)
        rows = {row["employee_id"]: row for row in response.data}
        self.assertEqual(set(rows), {self.staff.id, self.idle_staff.id})
        self.assertEqual(rows[self.staff.id]["status"], "active")
        self.assertEqual(rows[self.staff.id]["route"], "North Loop")
        self.assertEqual(rows[self.staff.id]["collections_count"], 1)
        self.assertEqual(rows[self.staff.id]["cash_in_hand"], Decimal("300.00"))
        self.assertEqual(rows[self.idle_staff.id]["status"], "idle")
        self.assertIsNone(rows[self.idle_staff.id]["route"])

    def test_malformed_report_date_is_rejected(self):
        self.auth_as("admin_rep", "admin123")
        for path in ("reports/daily-summary", "reports/employee-status"):
            response = self.client.get(f"/api/v1/{path}/?date=garbage")
            self.assertEqual(response.status_code, 400)
            self.assertIn("date", response.data["fields"])

    def test_reports_require_admin(self):
        self.auth_as("staff_rep", "staff123")
        self.assertEqual(self.client.get("/api/v1/reports/daily-summary/").status_code, 403)
