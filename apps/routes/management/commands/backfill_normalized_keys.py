import logging

from django.core.management.base import BaseCommand
from django.db.models import Q

from apps.common.text import normalize_key
from apps.routes.models import Route
from apps.shops.models import Shop

logger = logging.getLogger(__name__)


def backfill(model):
    """Fill empty ``name_lower``/``code_lower`` shadow columns; returns the number of rows touched."""
    updated = 0
    pending = model.objects.filter(Q(name_lower="") | Q(code_lower="", code__gt=""))
    for row in pending.iterator():
        name_lower = normalize_key(row.name)
        code_lower = normalize_key(row.code)
        if (name_lower, code_lower) == (row.name_lower, row.code_lower):
            continue
        model.objects.filter(pk=row.pk).update(name_lower=name_lower, code_lower=code_lower)
        updated += 1
    return updated


class Command(BaseCommand):
    help = "Backfill the lowercase name/code shadow columns on shops and routes created before they existed."

    def handle(self, *args, **options):
        routes_updated = backfill(Route)
        shops_updated = backfill(Shop)
        logger.info("Backfill finished: routes=%s shops=%s", routes_updated, shops_updated)
        self.stdout.write(
            self.style.SUCCESS(
                f"Backfill completed. routes_updated={routes_updated} shops_updated={shops_updated}"
            )
        )
