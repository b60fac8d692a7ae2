from django.core.management.base import BaseCommand

from apps.ledger.services import ledger_drift
from apps.shops.models import Shop


class Command(BaseCommand):
    help = "Report shops whose cached balance differs from the sum of their ledger entries."

    def handle(self, *args, **options):
        checked = 0
        drifted = 0
        for shop in Shop.objects.order_by("name").iterator():
            checked += 1
            drift = ledger_drift(shop)
            if drift:
                drifted += 1
                self.stdout.write(
                    self.style.WARNING(f"{shop.name} ({shop.pk}): balance={shop.current_balance} drift={drift}")
                )

        style = self.style.SUCCESS if drifted == 0 else self.style.ERROR
        self.stdout.write(style(f"Ledger check completed. shops_checked={checked} shops_drifted={drifted}"))
