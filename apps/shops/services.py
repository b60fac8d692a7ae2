from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import Duplicate
from apps.common.text import find_by_normalized_key
from apps.ledger.models import ChangeType
from apps.ledger.services import apply_balance_change
from apps.shops.models import Shop


def ensure_shop_code_unique(code, exclude_pk=None):
    if code and find_by_normalized_key(Shop.objects.alive(), "code", code, exclude_pk=exclude_pk):
        raise Duplicate(f"A shop with code '{code.strip()}' already exists.")


def create_shop(*, actor=None, current_balance=None, **fields):
    ensure_shop_code_unique(fields.get("code"))
    opening_balance = Decimal(current_balance or 0)
    with transaction.atomic():
        shop = Shop.objects.create(**fields)
        if opening_balance:
            shop, _ = apply_balance_change(
                shop=shop,
                change_amount=opening_balance,
                change_type=ChangeType.ADJUSTMENT,
                actor=actor,
                note="Opening balance",
                reference_type="shop",
                reference_id=shop.id,
            )
    return shop


def update_shop(shop, **changes):
    if "code" in changes:
        ensure_shop_code_unique(changes["code"], exclude_pk=shop.pk)
    for field, value in changes.items():
        setattr(shop, field, value)
    shop.save(update_fields=[*changes.keys(), "updated_at"])
    return shop


def delete_shop(shop):
    if shop.deleted_at is None:
        shop.deleted_at = timezone.now()
        shop.save(update_fields=["deleted_at", "updated_at"])
    return shop


def apply_correction(*, shop, amount, note, actor):
    shop, entry = apply_balance_change(
        shop=shop,
        change_amount=amount,
        change_type=ChangeType.ADJUSTMENT,
        actor=actor,
        note=note,
        reference_type="correction",
    )
    return {
        "shop_id": shop.id,
        "old_balance": entry.previous_balance,
        "new_balance": entry.new_balance,
        "entry_id": entry.id,
    }
