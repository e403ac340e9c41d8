"""
Schedule Status Resolver

An installment's status is a projection of its payment facts and the
calendar; it is never stored. Payment-based states win over date-based ones,
so an installment that received part of its amount after falling due reads
"partial", not "overdue".
"""

from decimal import Decimal
from datetime import date
from enum import Enum

from .currency import Currency, ZERO


class EntryStatus(Enum):
    """Display status of a repayment entry"""
    PAID = "paid"
    PARTIAL = "partial"
    DUE = "due"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


def resolve_status(
    emi_amount: Decimal,
    actual_paid: Decimal,
    misc_adjusted: Decimal,
    due_date: date,
    today: date,
    currency: Currency
) -> EntryStatus:
    """Derive an entry's status as of today"""
    applied = actual_paid + misc_adjusted

    if applied >= emi_amount - currency.epsilon:
        return EntryStatus.PAID
    if applied > ZERO:
        return EntryStatus.PARTIAL

    if due_date < today:
        return EntryStatus.OVERDUE
    if due_date == today:
        return EntryStatus.DUE
    return EntryStatus.UPCOMING
