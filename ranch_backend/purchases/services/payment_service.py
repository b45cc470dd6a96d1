# purchases/services/payment_service.py

from decimal import ROUND_HALF_UP, Decimal
import logging

from django.db import transaction
from django.utils import timezone

from accounting.models.posting_intent import PostingIntent
from accounting.services.account_resolver import (
    get_accounts_payable_account,
    get_bank_account,
    get_cash_account,
    get_chart_for_tenant,
)
from accounting.services.exceptions import InvalidTransitionError
from accounting.services.journal_entry_service import record_journal_entry
from purchases.models import Bill, Payment
from purchases.services import sequence_service
from purchases.services.exceptions import OverPaymentError, PurchasingError
from purchases.services.lifecycle import lock_document, transition


logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
SOURCE_PAYMENT = PostingIntent.SourceType.PAYMENT


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _payment_account(chart, method: str):
    if method == Payment.Method.CASH:
        return get_cash_account(chart)
    return get_bank_account(chart)


@transaction.atomic
def create_payment(
    *,
    bill_id,
    amount,
    method: str = Payment.Method.CHECK,
    payment_date=None,
    reference: str = "",
) -> Payment:
    """
    PAY A BILL (atomic)

    - bill row locked, so concurrent payments see each other's amount_paid
    - amount must not exceed amount_due (OverPaymentError)
    - ledger: Dr Accounts Payable / Cr Cash (CASH) or Bank (everything else)
    - bill -> PARTIALLY_PAID or PAID
    """
    bill = lock_document(Bill, bill_id)

    if bill.status not in Bill.PAYABLE_STATUSES:
        raise InvalidTransitionError(f"{bill.number} is {bill.status}; only approved bills can be paid")
    if method not in Payment.Method.values:
        raise PurchasingError(f"Invalid payment method: {method!r}")

    amt = _money(amount)
    if amt <= Decimal("0.00"):
        raise PurchasingError("Amount must be > 0")

    amount_due = bill.amount_due
    if amt > amount_due:
        logger.warning(
            "Over-payment rejected",
            extra={"bill": bill.number, "amount": str(amt), "amount_due": str(amount_due)},
        )
        raise OverPaymentError(f"Payment {amt} exceeds amount due {amount_due} on {bill.number}")

    payment = Payment(
        tenant_id=bill.tenant_id,
        number=sequence_service.next_number(tenant_id=bill.tenant_id, prefix=sequence_service.PAYMENT),
        bill=bill,
        amount=amt,
        method=method,
        reference=reference or "",
    )
    payment.payment_date = payment_date or timezone.localdate()
    payment.save()

    chart = get_chart_for_tenant(bill.tenant_id)
    description = f"Payment {payment.number} on bill {bill.number}"
    payment.journal_entry = record_journal_entry(
        tenant_id=bill.tenant_id,
        memo=f"{description} ({bill.vendor.name})",
        lines=[
            {"account": get_accounts_payable_account(chart), "debit": amt, "description": description},
            {"account": _payment_account(chart, method), "credit": amt, "description": description},
        ],
        entry_date=payment.payment_date,
        reference=f"{SOURCE_PAYMENT.value}:{payment.pk}",
        source_type=SOURCE_PAYMENT,
        source_id=str(payment.pk),
    )
    payment.save(update_fields=["journal_entry"])

    bill.amount_paid = _money(bill.amount_paid + amt)
    transition(bill, Bill.Status.PAID if bill.amount_due == 0 else Bill.Status.PARTIALLY_PAID)
    bill.save()

    logger.info(
        "Bill payment recorded",
        extra={
            "bill": bill.number,
            "payment": payment.number,
            "amount": str(amt),
            "method": method,
            "status": bill.status,
        },
    )
    return payment
