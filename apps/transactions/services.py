import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.common.exceptions import InvalidState
from apps.ledger.models import ChangeType
from apps.ledger.services import apply_balance_change
from apps.shops.models import Shop
from apps.transactions.models import PaymentMode, Transaction, TransactionStatus

logger = logging.getLogger(__name__)

MONEY = DecimalField(max_digits=14, decimal_places=2)


def _totals(queryset):
    return queryset.aggregate(
        total=Coalesce(Sum("amount"), Value(Decimal("0.00")), output_field=MONEY),
        count=Count("id"),
    )


def collect_cash(*, shop, employee, amount, payment_mode, reference="", latitude=None, longitude=None, actor=None):
    """Record a collection and lower the shop's balance, never below zero."""
    if shop.deleted_at is not None:
        raise InvalidState("Cannot collect from a deleted shop.")

    with transaction.atomic():
        txn = Transaction.objects.create(
            shop=shop,
            employee=employee,
            amount=amount,
            payment_mode=payment_mode,
            reference=reference,
            latitude=latitude,
            longitude=longitude,
        )
        apply_balance_change(
            shop=shop,
            change_amount=-amount,
            change_type=ChangeType.COLLECTION,
            actor=actor or employee,
            note=f"{payment_mode} collection of {amount}",
            reference_type="transaction",
            reference_id=txn.id,
            clamp_at_zero=True,
        )
        Shop.objects.filter(pk=shop.pk).update(last_collection_date=txn.timestamp, updated_at=timezone.now())

    logger.info("Collection %s recorded by employee %s at shop %s", txn.id, employee.pk, shop.pk)
    return txn


def reverse_transaction(txn, *, actor, reason=""):
    with transaction.atomic():
        locked = Transaction.objects.select_for_update().select_related("shop").get(pk=txn.pk)
        if locked.status == TransactionStatus.REVERSED:
            raise InvalidState("Transaction is already reversed.")

        apply_balance_change(
            shop=locked.shop,
            change_amount=locked.amount,
            change_type=ChangeType.REVERSAL,
            actor=actor,
            note=reason or f"Reversal of collection {locked.id}",
            reference_type="transaction",
            reference_id=locked.id,
        )
        locked.status = TransactionStatus.REVERSED
        locked.reversed_at = timezone.now()
        locked.reversed_by = actor
        locked.reverse_reason = reason
        locked.save(update_fields=["status", "reversed_at", "reversed_by", "reverse_reason"])
    return locked


def settled_cash(queryset):
    return queryset.filter(payment_mode=PaymentMode.CASH, status=TransactionStatus.COMPLETED)


def cash_in_hand(employee, date):
    """Same-day cash collections of ``employee`` still counted as completed."""
    return _totals(settled_cash(Transaction.objects.filter(employee=employee, timestamp__date=date)))


def cash_in_bag(employee):
    return _totals(settled_cash(Transaction.objects.filter(employee=employee, is_verified=False)))


def pending_handovers():
    rows = (
        Transaction.objects.filter(is_verified=False, status=TransactionStatus.COMPLETED)
        .values("employee_id", "employee__name")
        .annotate(
            total_amount=Coalesce(Sum("amount"), Value(Decimal("0.00")), output_field=MONEY),
            cash_amount=Coalesce(
                Sum("amount", filter=Q(payment_mode=PaymentMode.CASH)),
                Value(Decimal("0.00")),
                output_field=MONEY,
            ),
            transaction_count=Count("id"),
        )
        .order_by("employee__name")
    )
    return [
        {
            "employee_id": row["employee_id"],
            "employee_name": row["employee__name"],
            "total_amount": row["total_amount"],
            "cash_amount": row["cash_amount"],
            "transaction_count": row["transaction_count"],
        }
        for row in rows
        if row["cash_amount"] > 0
    ]


def verify_handover(*, employee, actor):
    """Mark every unverified completed cash collection of ``employee`` as received by the office."""
    with transaction.atomic():
        pending = settled_cash(
            Transaction.objects.select_for_update().filter(employee=employee, is_verified=False)
        )
        ids = list(pending.values_list("id", flat=True))
        if not ids:
            return {"verified": 0, "amount": Decimal("0.00")}
        amount = _totals(Transaction.objects.filter(id__in=ids))["total"]
        Transaction.objects.filter(id__in=ids).update(
            is_verified=True,
            verified_at=timezone.now(),
            verified_by=actor,
        )
    logger.info("Handover verified for employee %s: %s transactions, %s", employee.pk, len(ids), amount)
    return {"verified": len(ids), "amount": amount}
