"""
Amortization Module

Flat-rate installment schedules. Interest is charged on the financed amount for
the whole tenure up front (principal x rate x years) and spread evenly over
the installments; the last installment absorbs every rounding remainder so the
schedule sums to the plan totals exactly.

The calculator is pure: preview and plan creation both call `calculate()`,
and identical terms always produce an identical quote.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Optional, Tuple
import calendar

from .currency import Currency, ZERO, round_money, round_money_down, to_decimal
from .errors import ValidationError


MONTHS_PER_YEAR = Decimal('12')
HUNDRED = Decimal('100')


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class PlanTerms:
    """Purchase terms a plan is quoted and created from"""
    product_price: Decimal
    down_payment: Decimal
    interest_rate: Decimal          # Annual percent, e.g. 12 for 12%
    tenure: int                     # Number of monthly installments
    start_date: date
    finance_amount: Optional[Decimal] = None  # Overrides product_price as the base when > 0

    @property
    def base_amount(self) -> Decimal:
        """Amount the down payment is taken from"""
        if self.finance_amount is not None and self.finance_amount > ZERO:
            return self.finance_amount
        return self.product_price

    def validate(self) -> None:
        """
        Check the terms before any computation

        Raises:
            ValidationError: On the first violated constraint
        """
        for name in ("product_price", "down_payment", "interest_rate"):
            try:
                value = to_decimal(getattr(self, name))
            except ValueError:
                raise ValidationError(f"{name} must be a number", {"field": name})
            if not value.is_finite():
                raise ValidationError(f"{name} must be a finite number", {"field": name})
            setattr(self, name, value)

        if self.finance_amount is not None:
            try:
                self.finance_amount = to_decimal(self.finance_amount)
            except ValueError:
                raise ValidationError("finance_amount must be a number", {"field": "finance_amount"})
            if not self.finance_amount.is_finite() or self.finance_amount < ZERO:
                raise ValidationError("Finance amount cannot be negative", {"field": "finance_amount"})

        if isinstance(self.tenure, bool) or not isinstance(self.tenure, int) or self.tenure < 1:
            raise ValidationError("Tenure must be at least one month", {"tenure": self.tenure})
        if self.product_price < ZERO:
            raise ValidationError("Product price cannot be negative", {"productPrice": self.product_price})
        if self.down_payment < ZERO:
            raise ValidationError("Down payment cannot be negative", {"downPayment": self.down_payment})
        if self.interest_rate < ZERO:
            raise ValidationError("Interest rate cannot be negative", {"interestRate": self.interest_rate})
        if self.down_payment > self.base_amount:
            raise ValidationError(
                "Down payment cannot exceed the financed base amount",
                {"downPayment": self.down_payment, "baseAmount": self.base_amount}
            )
        if not isinstance(self.start_date, date):
            raise ValidationError("Start date is required", {"field": "start_date"})


@dataclass(frozen=True)
class ScheduleLine:
    """One computed installment of a quote"""
    installment_no: int
    due_date: date
    emi_amount: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


@dataclass(frozen=True)
class PlanQuote:
    """Totals and schedule for a set of terms"""
    product_price: Decimal
    finance_amount: Optional[Decimal]
    down_payment: Decimal
    interest_rate: Decimal
    tenure: int
    start_date: date
    financed_amount: Decimal
    total_interest: Decimal
    total_payable: Decimal
    emi_amount: Decimal
    schedule: Tuple[ScheduleLine, ...]


class AmortizationCalculator:
    """
    Flat-rate schedule calculator for one currency
    """

    def __init__(self, currency: Currency):
        self.currency = currency

    def calculate(self, terms: PlanTerms) -> PlanQuote:
        """
        Compute plan totals and the full repayment schedule

        Raises:
            ValidationError: If the terms are malformed
        """
        terms.validate()

        product_price = round_money(terms.product_price, self.currency)
        down_payment = round_money(terms.down_payment, self.currency)
        finance_amount = None
        if terms.finance_amount is not None and terms.finance_amount > ZERO:
            finance_amount = round_money(terms.finance_amount, self.currency)
        base = finance_amount if finance_amount is not None else product_price
        tenure = terms.tenure

        financed_amount = base - down_payment
        total_interest = round_money(
            financed_amount * (terms.interest_rate / HUNDRED) * (Decimal(tenure) / MONTHS_PER_YEAR),
            self.currency
        )
        total_payable = financed_amount + total_interest

        emi_amount, last_emi = self._split_evenly(total_payable, tenure)
        principal, last_principal = self._split_evenly(financed_amount, tenure)

        lines = []
        for installment_no in range(1, tenure + 1):
            is_last = installment_no == tenure
            line_emi = last_emi if is_last else emi_amount
            line_principal = last_principal if is_last else principal
            lines.append(ScheduleLine(
                installment_no=installment_no,
                due_date=add_months(terms.start_date, installment_no),
                emi_amount=line_emi,
                principal=line_principal,
                interest=line_emi - line_principal,
                balance=ZERO if is_last else financed_amount - principal * installment_no
            ))

        return PlanQuote(
            product_price=product_price,
            finance_amount=finance_amount,
            down_payment=down_payment,
            interest_rate=terms.interest_rate,
            tenure=tenure,
            start_date=terms.start_date,
            financed_amount=financed_amount,
            total_interest=total_interest,
            total_payable=total_payable,
            emi_amount=emi_amount,
            schedule=tuple(lines)
        )

    def _split_evenly(self, total: Decimal, parts: int) -> Tuple[Decimal, Decimal]:
        """
        Regular and last share of total over parts installments

        The last share is whatever the regular shares leave over. Half-up
        rounding is used unless it would leave the last share negative, in
        which case the regular share is rounded down.
        """
        regular = round_money(total / parts, self.currency)
        last = total - regular * (parts - 1)
        if last < ZERO:
            regular = round_money_down(total / parts, self.currency)
            last = total - regular * (parts - 1)
        return regular, last
