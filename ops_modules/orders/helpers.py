"""
Order Pure Functions (``ops_modules.orders.helpers``).
"""

from decimal import Decimal

from ops_kernel.models.order import PaymentStatus


def payment_status_for(amount: Decimal, paid_amount: Decimal) -> PaymentStatus:
    """PAID once the full amount is covered, PARTIAL for any payment below it."""
    if paid_amount >= amount:
        return PaymentStatus.PAID
    if paid_amount > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def apply_payment(
    amount: Decimal,
    paid_amount: Decimal,
    payment: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Apply a payment to an order balance.

    Returns ``(applied, new_paid_amount, new_outstanding_amount)``.  The
    applied amount is capped at the outstanding balance, so an overpayment
    never drives the balance negative.

    Raises:
        ValueError: if ``payment`` is not positive.
    """
    if payment <= 0:
        raise ValueError(f"payment must be positive, got {payment}")
    outstanding = amount - paid_amount
    applied = min(payment, max(outstanding, Decimal("0")))
    new_paid = paid_amount + applied
    return applied, new_paid, amount - new_paid
