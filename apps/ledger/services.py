import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, Sum
from django.db.models.functions import Coalesce

from apps.ledger.models import BalanceAuditLog
from apps.shops.models import Shop

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def to_amount(value):
    return Decimal(value).quantize(Decimal("0.01"))


def apply_balance_change(
    *,
    shop,
    change_amount,
    change_type,
    actor=None,
    note="",
    reference_type="",
    reference_id="",
    clamp_at_zero=False,
):
    """Move a shop's balance by ``change_amount`` and append the matching ledger entry.

    This is the only writer of ``Shop.current_balance``. The shop row is locked for the duration
    of the change. With ``clamp_at_zero`` the new balance never drops below zero; the entry then
    records the delta that was actually applied, so ``new_balance == previous_balance + change_amount``
    holds for every entry.

    Returns ``(shop, entry)`` with ``shop`` refreshed from the locked row.
    """
    requested = to_amount(change_amount)
    with transaction.atomic():
        locked = Shop.objects.select_for_update().get(pk=shop.pk)
        previous = locked.current_balance
        new_balance = previous + requested
        if clamp_at_zero and new_balance < ZERO:
            logger.warning(
                "Collection of %s on shop %s exceeds balance %s; clamping at zero",
                -requested,
                locked.pk,
                previous,
            )
            new_balance = ZERO

        locked.current_balance = new_balance
        locked.save(update_fields=["current_balance", "updated_at"])
        entry = BalanceAuditLog.objects.create(
            shop=locked,
            previous_balance=previous,
            new_balance=new_balance,
            change_amount=new_balance - previous,
            change_type=change_type,
            reference_type=reference_type,
            reference_id=str(reference_id or ""),
            changed_by=actor if getattr(actor, "is_authenticated", False) else None,
            note=note[:255],
        )

    logger.info("Ledger %s on shop %s: %s -> %s", change_type, locked.pk, previous, new_balance)
    return locked, entry


def ledger_total(shop):
    return shop.ledger_entries.aggregate(
        total=Coalesce(Sum("change_amount"), ZERO, output_field=DecimalField(max_digits=12, decimal_places=2)),
    )["total"]


def ledger_drift(shop):
    """Cached balance minus the sum of the shop's ledger; zero when they agree."""
    shop.refresh_from_db(fields=["current_balance"])
    return shop.current_balance - ledger_total(shop)
