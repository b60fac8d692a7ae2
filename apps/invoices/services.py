from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import Duplicate, InvalidState
from apps.common.text import find_by_normalized_key
from apps.invoices.models import Invoice, InvoiceStatus
from apps.ledger.models import ChangeType
from apps.ledger.services import apply_balance_change


def ensure_invoice_number_unique(invoice_number, exclude_pk=None):
    if find_by_normalized_key(Invoice.objects.all(), "invoice_number", invoice_number, exclude_pk=exclude_pk):
        raise Duplicate(f"Invoice number '{invoice_number.strip()}' already exists.")


def create_invoice(*, shop, amount, invoice_number, invoice_date, actor=None, reference="", note=""):
    if shop.deleted_at is not None:
        raise InvalidState("Cannot invoice a deleted shop.")
    ensure_invoice_number_unique(invoice_number)
    with transaction.atomic():
        invoice = Invoice.objects.create(
            shop=shop,
            created_by=actor,
            amount=amount,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            reference=reference,
            note=note,
        )
        apply_balance_change(
            shop=shop,
            change_amount=amount,
            change_type=ChangeType.INVOICE,
            actor=actor,
            note=f"Invoice {invoice.invoice_number}",
            reference_type="invoice",
            reference_id=invoice.id,
        )
    return invoice


def update_invoice(invoice, *, actor=None, **changes):
    """Apply metadata changes; an amount change is booked as one adjustment for the difference."""
    if "invoice_number" in changes:
        ensure_invoice_number_unique(changes["invoice_number"], exclude_pk=invoice.pk)

    with transaction.atomic():
        locked = Invoice.objects.select_for_update().select_related("shop").get(pk=invoice.pk)
        if locked.status == InvoiceStatus.CANCELLED:
            raise InvalidState("Cancelled invoices cannot be updated.")

        delta = changes["amount"] - locked.amount if "amount" in changes else 0
        for field, value in changes.items():
            setattr(locked, field, value)
        locked.save()

        if delta:
            apply_balance_change(
                shop=locked.shop,
                change_amount=delta,
                change_type=ChangeType.ADJUSTMENT,
                actor=actor,
                note=f"Invoice {locked.invoice_number} amount changed by {delta}",
                reference_type="invoice",
                reference_id=locked.id,
            )
    return locked


def cancel_invoice(invoice, *, actor=None, reason=""):
    with transaction.atomic():
        locked = Invoice.objects.select_for_update().select_related("shop").get(pk=invoice.pk)
        if locked.status == InvoiceStatus.CANCELLED:
            raise InvalidState("Invoice is already cancelled.")

        apply_balance_change(
            shop=locked.shop,
            change_amount=-locked.amount,
            change_type=ChangeType.INVOICE_CANCEL,
            actor=actor,
            note=reason or f"Invoice {locked.invoice_number} cancelled",
            reference_type="invoice",
            reference_id=locked.id,
        )
        locked.status = InvoiceStatus.CANCELLED
        locked.cancelled_at = timezone.now()
        locked.cancelled_by = actor
        locked.save(update_fields=["status", "cancelled_at", "cancelled_by", "updated_at"])
    return locked
