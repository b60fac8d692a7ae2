from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from apps.ledger.models import BalanceAuditLog, ChangeType
from apps.ledger.services import apply_balance_change, ledger_drift
from apps.shops.models import Shop

User = get_user_model()


class ApplyBalanceChangeTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_ledger", password="admin123", role="admin")
        self.shop = Shop.objects.create(name="Balaji", address="3 Temple St", zone="South")

    def test_every_change_writes_one_entry(self):
        shop, entry = apply_balance_change(
            shop=self.shop,
            change_amount=Decimal("1500.00"),
            change_type=ChangeType.INVOICE,
            actor=self.admin,
            note="Invoice INV-1",
            reference_type="invoice",
            reference_id="abc",
        )

        self.assertEqual(shop.current_balance, Decimal("1500.00"))
        self.assertEqual(entry.previous_balance, Decimal("0.00"))
        self.assertEqual(entry.new_balance, Decimal("1500.00"))
        self.assertEqual(entry.change_amount, Decimal("1500.00"))
        self.assertEqual(entry.changed_by, self.admin)
        self.assertEqual(BalanceAuditLog.objects.filter(shop=self.shop).count(), 1)

    def test_clamped_change_records_effective_delta(self):
        apply_balance_change(shop=self.shop, change_amount=Decimal("300.00"), change_type=ChangeType.ADJUSTMENT)

        with self.assertLogs("apps.ledger.services", level="WARNING"):
            shop, entry = apply_balance_change(
                shop=self.shop,
                change_amount=Decimal("-500.00"),
                change_type=ChangeType.COLLECTION,
                clamp_at_zero=True,
            )

        self.assertEqual(shop.current_balance, Decimal("0.00"))
        self.assertEqual(entry.change_amount, Decimal("-300.00"))
        self.assertEqual(entry.new_balance, entry.previous_balance + entry.change_amount)
        self.assertEqual(ledger_drift(shop), Decimal("0.00"))

    def test_unclamped_change_can_go_negative(self):
        shop, entry = apply_balance_change(
            shop=self.shop,
            change_amount=Decimal("-75.50"),
            change_type=ChangeType.ADJUSTMENT,
        )
        self.assertEqual(shop.current_balance, Decimal("-75.50"))
        self.assertEqual(entry.change_amount, Decimal("-75.50"))

    def test_balance_matches_ledger_after_many_changes(self):
        for amount, change_type in (
            ("5000.00", ChangeType.ADJUSTMENT),
            ("-2000.00", ChangeType.COLLECTION),
            ("1500.00", ChangeType.INVOICE),
            ("2000.00", ChangeType.REVERSAL),
            ("-1500.00", ChangeType.INVOICE_CANCEL),
        ):
            apply_balance_change(shop=self.shop, change_amount=Decimal(amount), change_type=change_type)

        self.shop.refresh_from_db()
        self.assertEqual(self.shop.current_balance, Decimal("5000.00"))
        entries = list(BalanceAuditLog.objects.filter(shop=self.shop))
        self.assertEqual(len(entries), 5)
        self.assertEqual(sum(entry.change_amount for entry in entries), self.shop.current_balance)
        for entry in entries:
            self.assertEqual(entry.new_balance, entry.previous_balance + entry.change_amount)


class CheckLedgerCommandTests(TestCase):
    def test_reports_drifted_shops(self):
        healthy = Shop.objects.create(name="Healthy", address="a", zone="z")
        apply_balance_change(shop=healthy, change_amount=Decimal("10.00"), change_type=ChangeType.ADJUSTMENT)
        drifted = Shop.objects.create(name="Drifted", address="b", zone="z")
        Shop.objects.filter(pk=drifted.pk).update(current_balance=Decimal("42.00"))

        out = StringIO()
        call_command("check_ledger", stdout=out)

        output = out.getvalue()
        self.assertIn("Drifted", output)
        self.assertNotIn("Healthy (", output)
        self.assertIn("shops_checked=2 shops_drifted=1", output)
