from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.common.exceptions import InvalidState
from apps.settlements.models import DailyReconciliation, ReconciliationStatus, Settlement, SettlementStatus
from apps.transactions.models import Transaction
from apps.transactions.services import cash_in_hand, settled_cash


def expected_amount_for(transactions):
    """Sum of the completed cash collections among ``transactions``; other rows count as zero."""
    ids = [txn.pk for txn in transactions]
    return sum(
        settled_cash(Transaction.objects.filter(pk__in=ids)).values_list("amount", flat=True),
        Decimal("0.00"),
    )


def ensure_own_transactions(employee, transactions):
    foreign = [str(txn.pk) for txn in transactions if txn.employee_id != employee.pk]
    if foreign:
        raise ValidationError({"transactions": [f"Transactions {', '.join(foreign)} belong to another employee."]})


def resolve_status(received_amount, expected_amount):
    variance = received_amount - expected_amount
    return variance, SettlementStatus.RECEIVED if variance == 0 else SettlementStatus.DISCREPANCY


def create_settlement(*, employee, transactions):
    ensure_own_transactions(employee, transactions)
    with transaction.atomic():
        settlement = Settlement.objects.create(
            employee=employee,
            expected_amount=expected_amount_for(transactions),
        )
        settlement.transactions.set(transactions)
    return settlement


def receive_settlement(settlement, *, received_amount, actor, note=""):
    with transaction.atomic():
        locked = Settlement.objects.select_for_update().get(pk=settlement.pk)
        if locked.status != SettlementStatus.PENDING:
            raise InvalidState(f"Settlement is already {locked.status}.")
        locked.received_amount = received_amount
        locked.variance, locked.status = resolve_status(received_amount, locked.expected_amount)
        locked.received_at = timezone.now()
        locked.received_by = actor
        locked.note = note
        locked.save()
    return locked


def verify_settlement(*, employee, transactions, actor, received_amount=None, note=""):
    """Create a settlement and resolve it in one step; no received amount means it matched."""
    ensure_own_transactions(employee, transactions)
    expected = expected_amount_for(transactions)
    received = expected if received_amount is None else received_amount
    variance, status = resolve_status(received, expected)
    with transaction.atomic():
        settlement = Settlement.objects.create(
            employee=employee,
            expected_amount=expected,
            received_amount=received,
            variance=variance,
            status=status,
            received_at=timezone.now(),
            received_by=actor,
            note=note,
        )
        settlement.transactions.set(transactions)
    return settlement


def override_settlement_status(settlement, *, status, note=None):
    settlement.status = status
    update_fields = ["status", "updated_at"]
    if note is not None:
        settlement.note = note
        update_fields.append("note")
    settlement.save(update_fields=update_fields)
    return settlement


def verify_reconciliation(*, employee, date, actual_cash, actor, note=""):
    expected = cash_in_hand(employee, date)["total"]
    variance = actual_cash - expected
    status = ReconciliationStatus.VERIFIED if variance == 0 else ReconciliationStatus.MISMATCH
    reconciliation, _ = DailyReconciliation.objects.update_or_create(
        employee=employee,
        date=date,
        defaults={
            "expected_cash": expected,
            "actual_cash": actual_cash,
            "variance": variance,
            "status": status,
            "note": note,
            "verified_at": timezone.now(),
            "verified_by": actor,
        },
    )
    return reconciliation


def override_reconciliation_status(reconciliation, *, status, note=None):
    reconciliation.status = status
    update_fields = ["status", "updated_at"]
    if note is not None:
        reconciliation.note = note
        update_fields.append("note")
    reconciliation.save(update_fields=update_fields)
    return reconciliation


def close_day(date):
    return DailyReconciliation.objects.filter(date=date).update(
        status=ReconciliationStatus.CLOSED,
        updated_at=timezone.now(),
    )
