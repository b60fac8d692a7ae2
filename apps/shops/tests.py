from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.ledger.models import BalanceAuditLog
from apps.ledger.services import ledger_drift
from apps.routes.models import Route
from apps.shops.models import Shop

User = get_user_model()


class ShopApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_shop", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_shop", password="staff123", role="field_staff")
        self.route = Route.objects.create(name="North", code="N1")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_shop(self, **overrides):
        payload = {
            "name": "Lakshmi Stores",
            "address": "12 Market Road",
            "zone": "Central",
            "code": "LS-01",
            "route": str(self.route.id),
        }
        payload.update(overrides)
        return self.client.post("/api/v1/shops/", payload, format="json")

    def test_opening_balance_is_written_through_the_ledger(self):
        self.auth_as("admin_shop", "admin123")
        response = self.create_shop(current_balance="5000.00")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["current_balance"], "5000.00")
        shop = Shop.objects.get(id=response.data["id"])
        entry = BalanceAuditLog.objects.get(shop=shop)
        self.assertEqual(entry.change_type, "adjustment")
        self.assertEqual(entry.previous_balance, Decimal("0.00"))
        self.assertEqual(entry.new_balance, Decimal("5000.00"))
        self.assertEqual(entry.changed_by, self.admin)
        self.assertEqual(ledger_drift(shop), Decimal("0.00"))

    def test_shop_without_opening_balance_has_no_ledger_entry(self):
        self.auth_as("admin_shop", "admin123")
        response = self.create_shop()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["current_balance"], "0.00")
        self.assertFalse(BalanceAuditLog.objects.exists())

    def test_shop_code_is_unique_ignoring_case_and_whitespace(self):
        self.auth_as("admin_shop", "admin123")
        self.assertEqual(self.create_shop().status_code, 201)

        duplicate = self.create_shop(name="Other", code=" ls-01 ")
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.data["code"], "duplicate")

    def test_shop_code_check_covers_rows_without_shadow_column(self):
        legacy = Shop.objects.create(name="Old Shop", address="1 Lane", zone="East", code="OLD-7")
        Shop.objects.filter(pk=legacy.pk).update(code_lower="", name_lower="")

        self.auth_as("admin_shop", "admin123")
        duplicate = self.create_shop(name="New Shop", code="old-7")

        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.data["code"], "duplicate")

    def test_deleted_shop_code_can_be_reused(self):
        self.auth_as("admin_shop", "admin123")
        first = self.create_shop()
        self.assertEqual(self.client.delete(f"/api/v1/shops/{first.data['id']}/").status_code, 204)

        second = self.create_shop(name="Lakshmi Stores 2")
        self.assertEqual(second.status_code, 201)

    def test_balance_is_read_only_on_update(self):
        self.auth_as("admin_shop", "admin123")
        shop_id = self.create_shop(current_balance="100.00").data["id"]

        response = self.client.patch(
            f"/api/v1/shops/{shop_id}/",
            {"current_balance": "999.00", "phone": "98450 00000"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["current_balance"], "100.00")
        self.assertEqual(response.data["phone"], "98450 00000")

    def test_list_filters_and_soft_delete(self):
        self.auth_as("admin_shop", "admin123")
        kept = self.create_shop().data["id"]
        removed = self.create_shop(name="Ganesh Traders", code="GT-01", zone="West", route=None).data["id"]
        self.client.delete(f"/api/v1/shops/{removed}/")

        listing = self.client.get("/api/v1/shops/")
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["id"], kept)

        with_deleted = self.client.get("/api/v1/shops/?include_deleted=true")
        self.assertEqual(with_deleted.data["count"], 2)

        by_route = self.client.get(f"/api/v1/shops/?route={self.route.id}")
        self.assertEqual(by_route.data["count"], 1)

        search = self.client.get("/api/v1/shops/?q=lakshmi")
        self.assertEqual(search.data["count"], 1)

        self.assertTrue(Shop.objects.filter(id=removed, deleted_at__isnull=False).exists())

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_shop", "admin123")
        for query in ("route=not-a-uuid", "include_deleted=perhaps"):
            response = self.client.get(f"/api/v1/shops/?{query}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")

    def test_zones_are_distinct_and_sorted(self):
        self.auth_as("admin_shop", "admin123")
        self.create_shop(zone="West", code="A")
        self.create_shop(name="B", zone="Central", code="B")
        self.create_shop(name="C", zone="West", code="C")

        response = self.client.get("/api/v1/shops/zones/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, ["Central", "West"])

    def test_correction_moves_balance_in_either_direction(self):
        self.auth_as("admin_shop", "admin123")
        shop_id = self.create_shop(current_balance="300.00").data["id"]

        response = self.client.post(
            f"/api/v1/shops/{shop_id}/correction/",
            {"amount": "-500.00", "note": "Returned goods"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["old_balance"], Decimal("300.00"))
        self.assertEqual(response.data["new_balance"], Decimal("-200.00"))
        entry = BalanceAuditLog.objects.get(id=response.data["entry_id"])
        self.assertEqual(entry.change_amount, Decimal("-500.00"))
        self.assertEqual(entry.note, "Returned goods")

        ledger = self.client.get(f"/api/v1/shops/{shop_id}/ledger/")
        self.assertEqual(ledger.data["count"], 2)
        self.assertEqual(ledger.data["results"][0]["change_amount"], "-500.00")

    def test_correction_requires_note_and_non_zero_amount(self):
        self.auth_as("admin_shop", "admin123")
        shop_id = self.create_shop().data["id"]

        response = self.client.post(
            f"/api/v1/shops/{shop_id}/correction/",
            {"amount": "0.00", "note": " "},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid")
        self.assertIn("amount", response.data["fields"])
        self.assertIn("note", response.data["fields"])

    def test_field_staff_can_view_but_not_manage_shops(self):
        Shop.objects.create(name="Viewable", address="x", zone="Central")
        self.auth_as("staff_shop", "staff123")

        self.assertEqual(self.client.get("/api/v1/shops/").status_code, 200)
        self.assertEqual(self.create_shop().status_code, 403)

    def test_missing_shop_returns_not_found(self):
        self.auth_as("admin_shop", "admin123")
        response = self.client.get("/api/v1/shops/00000000-0000-0000-0000-000000000000/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")
