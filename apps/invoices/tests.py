from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.invoices.models import Invoice
from apps.ledger.models import BalanceAuditLog
from apps.ledger.services import ledger_drift
from apps.shops.models import Shop

User = get_user_model()


class InvoiceApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_inv", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_inv", password="staff123", role="field_staff")
        self.shop = Shop.objects.create(name="Annapurna Mart", address="4 Main Rd", zone="East")
        self.other_shop = Shop.objects.create(name="Vijay Provisions", address="8 Cross Rd", zone="East")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_invoice(self, invoice_number="INV-2001", amount="1200.00", shop=None, **extra):
        payload = {
            "shop": str((shop or self.shop).id),
            "amount": amount,
            "invoice_number": invoice_number,
            "invoice_date": "2025-03-14",
        }
        payload.update(extra)
        return self.client.post("/api/v1/invoices/", payload, format="json")

    def balance(self, shop=None):
        shop = shop or self.shop
        shop.refresh_from_db()
        return shop.current_balance

    def test_create_invoice_increases_balance(self):
        self.auth_as("admin_inv", "admin123")
        response = self.create_invoice(reference="PO-77", note="March supply")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "active")
        self.assertEqual(response.data["created_by"], self.admin.id)
        self.assertEqual(self.balance(), Decimal("1200.00"))
        entry = BalanceAuditLog.objects.get(reference_id=response.data["id"])
        self.assertEqual(entry.change_type, "invoice")
        self.assertEqual(entry.changed_by, self.admin)

    def test_invoice_number_is_unique_across_shops_ignoring_case(self):
        self.auth_as("admin_inv", "admin123")
        self.assertEqual(self.create_invoice().status_code, 201)

        duplicate = self.create_invoice(invoice_number=" inv-2001", shop=self.other_shop)

        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.data["code"], "duplicate")
        self.assertEqual(self.balance(self.other_shop), Decimal("0.00"))

    def test_invoice_number_check_covers_rows_without_shadow_column(self):
        legacy = Invoice.objects.create(
            shop=self.shop,
            amount=Decimal("10.00"),
            invoice_number="LEGACY-9",
            invoice_date="2024-01-01",
        )
        Invoice.objects.filter(pk=legacy.pk).update(invoice_number_lower="")
        self.auth_as("admin_inv", "admin123")

        response = self.create_invoice(invoice_number="legacy-9")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate")

    def test_amount_must_be_positive(self):
        self.auth_as("admin_inv", "admin123")
        response = self.create_invoice(amount="0.00")
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", response.data["fields"])

    def test_amount_change_books_one_adjustment_for_the_difference(self):
        self.auth_as("admin_inv", "admin123")
        invoice_id = self.create_invoice().data["id"]

        response = self.client.patch(f"/api/v1/invoices/{invoice_id}/", {"amount": "1000.00"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["amount"], "1000.00")
        self.assertEqual(self.balance(), Decimal("1000.00"))
        adjustment = BalanceAuditLog.objects.get(change_type="adjustment")
        self.assertEqual(adjustment.change_amount, Decimal("-200.00"))
        self.assertEqual(ledger_drift(self.shop), Decimal("0.00"))

    def test_metadata_change_leaves_ledger_alone(self):
        self.auth_as("admin_inv", "admin123")
        invoice_id = self.create_invoice().data["id"]

        response = self.client.patch(
            f"/api/v1/invoices/{invoice_id}/",
            {"note": "Corrected note", "invoice_number": "INV-2001-A"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["invoice_number"], "INV-2001-A")
        self.assertEqual(BalanceAuditLog.objects.filter(shop=self.shop).count(), 1)

    def test_renumbering_to_an_existing_number_is_rejected(self):
        self.auth_as("admin_inv", "admin123")
        self.create_invoice(invoice_number="INV-1")
        second = self.create_invoice(invoice_number="INV-2").data["id"]

        response = self.client.patch(f"/api/v1/invoices/{second}/", {"invoice_number": "inv-1"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate")

    def test_cancel_reverses_the_invoice_once(self):
        self.auth_as("admin_inv", "admin123")
        invoice_id = self.create_invoice().data["id"]

        cancelled = self.client.post(f"/api/v1/invoices/{invoice_id}/cancel/", {"reason": "Duplicate bill"}, format="json")

        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.data["status"], "cancelled")
        self.assertEqual(self.balance(), Decimal("0.00"))
        entry = BalanceAuditLog.objects.get(change_type="invoice_cancel")
        self.assertEqual(entry.change_amount, Decimal("-1200.00"))
        self.assertEqual(entry.note, "Duplicate bill")

        again = self.client.post(f"/api/v1/invoices/{invoice_id}/cancel/", {}, format="json")
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.data["code"], "invalid_state")

        update = self.client.patch(f"/api/v1/invoices/{invoice_id}/", {"amount": "50.00"}, format="json")
        self.assertEqual(update.status_code, 400)
        self.assertEqual(update.data["code"], "invalid_state")
        self.assertEqual(self.balance(), Decimal("0.00"))

    def test_lookup_by_number_and_search(self):
        self.auth_as("admin_inv", "admin123")
        self.create_invoice(invoice_number="INV-3001", reference="PO-1")
        self.create_invoice(invoice_number="INV-3002", shop=self.other_shop)

        by_number = self.client.get("/api/v1/invoices/by-number/inv-3002/")
        self.assertEqual(by_number.status_code, 200)
        self.assertEqual(by_number.data["shop"], self.other_shop.id)

        missing = self.client.get("/api/v1/invoices/by-number/INV-9999/")
        self.assertEqual(missing.status_code, 404)

        by_shop_name = self.client.get("/api/v1/invoices/?q=vijay")
        self.assertEqual(by_shop_name.data["count"], 1)

        by_reference = self.client.get("/api/v1/invoices/?q=po-1")
        self.assertEqual(by_reference.data["count"], 1)
        self.assertEqual(by_reference.data["results"][0]["invoice_number"], "INV-3001")

        by_shop = self.client.get(f"/api/v1/invoices/?shop={self.shop.id}")
        self.assertEqual(by_shop.data["count"], 1)

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_inv", "admin123")
        for query in ("shop=zzz", "status=void"):
            response = self.client.get(f"/api/v1/invoices/?{query}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")

    def test_field_staff_can_read_but_not_issue_invoices(self):
        self.auth_as("staff_inv", "staff123")
        self.assertEqual(self.client.get("/api/v1/invoices/").status_code, 200)
        self.assertEqual(self.create_invoice().status_code, 403)
