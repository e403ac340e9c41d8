"""
Pydantic schemas for API requests and response builders

Request and response keys are camelCase. Amounts are JSON numbers on the wire
and Decimal everywhere inside the engine.
"""

from decimal import Decimal
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..currency import Currency
from ..amortization import PlanQuote, PlanTerms, ScheduleLine
from ..customers import Customer
from ..ledger import MiscTransaction
from ..plans import Guarantor, InstallmentPayment, InstallmentPlan, RepaymentEntry
from ..payments import PaymentCommand, PaymentResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Plan schemas
class PlanTermsRequest(CamelModel):
    product_price: Decimal
    finance_amount: Optional[Decimal] = None
    down_payment: Decimal = Decimal('0')
    interest_rate: Decimal = Decimal('0')
    tenure: int
    start_date: date

    def to_terms(self) -> PlanTerms:
        return PlanTerms(
            product_price=self.product_price,
            finance_amount=self.finance_amount,
            down_payment=self.down_payment,
            interest_rate=self.interest_rate,
            tenure=self.tenure,
            start_date=self.start_date
        )


class CreatePlanRequest(PlanTermsRequest):
    customer_id: str
    product_id: str


class PayInstallmentRequest(CamelModel):
    amount: Decimal = Decimal('0')
    use_misc_balance: bool = False
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    def to_command(self) -> PaymentCommand:
        return PaymentCommand(
            amount=self.amount,
            use_misc_balance=self.use_misc_balance,
            payment_method=self.payment_method,
            notes=self.notes
        )


# Ledger schemas
class CreateMiscTransactionRequest(CamelModel):
    customer_id: str
    transaction_type: str = Field(..., description="Credit, Debit or Adjustment")
    amount: Decimal = Field(..., description="Positive; signed for Adjustment")
    description: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None


# Customer schemas
class CreateCustomerRequest(CamelModel):
    name: str
    phone: Optional[str] = None
    cnic: Optional[str] = None
    address: Optional[str] = None


# ── Response builders ─────────────────────────────────────

def money(value: Optional[Decimal]) -> Optional[float]:
    """Decimal amount as a JSON number"""
    if value is None:
        return None
    return float(value)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def ledger_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def schedule_line_to_dto(line: ScheduleLine) -> Dict[str, Any]:
    return {
        "installmentNo": line.installment_no,
        "dueDate": line.due_date.isoformat(),
        "emiAmount": money(line.emi_amount),
        "principal": money(line.principal),
        "interest": money(line.interest),
        "balance": money(line.balance),
    }


def quote_to_dto(quote: PlanQuote) -> Dict[str, Any]:
    return {
        "productPrice": money(quote.product_price),
        "financeAmount": money(quote.finance_amount),
        "financedAmount": money(quote.financed_amount),
        "downPayment": money(quote.down_payment),
        "interestRate": money(quote.interest_rate),
        "tenure": quote.tenure,
        "emiAmount": money(quote.emi_amount),
        "totalPayable": money(quote.total_payable),
        "totalInterest": money(quote.total_interest),
        "schedule": [schedule_line_to_dto(line) for line in quote.schedule],
    }


def entry_to_dto(entry: RepaymentEntry, today: date, currency: Currency) -> Dict[str, Any]:
    return {
        "installmentNo": entry.installment_no,
        "dueDate": entry.due_date.isoformat(),
        "emiAmount": money(entry.emi_amount),
        "principal": money(entry.principal),
        "interest": money(entry.interest),
        "balance": money(entry.balance),
        "status": entry.status_on(today, currency).value,
        "paidDate": _iso(entry.paid_date),
        "actualPaidAmount": money(entry.actual_paid_amount),
        "miscAdjustedAmount": money(entry.misc_adjusted_amount),
    }


def guarantor_to_dto(guarantor: Guarantor) -> Dict[str, Any]:
    return {
        "id": guarantor.id,
        "planId": guarantor.plan_id,
        "name": guarantor.name,
        "so": guarantor.so,
        "phone": guarantor.phone,
        "cnic": guarantor.cnic,
        "address": guarantor.address,
        "relationship": guarantor.relationship,
        "picture": guarantor.picture,
    }


def plan_to_dto(
    plan: InstallmentPlan,
    customer: Optional[Customer],
    guarantors: List[Guarantor],
    today: date,
    currency: Currency
) -> Dict[str, Any]:
    return {
        "id": plan.id,
        "customerId": plan.customer_id,
        "customerName": customer.name if customer else None,
        "customerPhone": customer.phone if customer else None,
        "customerAddress": customer.address if customer else None,
        "productId": plan.product_id,
        "productPrice": money(plan.product_price),
        "financeAmount": money(plan.finance_amount),
        "downPayment": money(plan.down_payment),
        "financedAmount": money(plan.financed_amount),
        "interestRate": money(plan.interest_rate),
        "tenure": plan.tenure,
        "emiAmount": money(plan.emi_amount),
        "totalPayable": money(plan.total_payable),
        "totalInterest": money(plan.total_interest),
        "startDate": plan.start_date.isoformat(),
        "status": plan.status.value,
        "paidInstallments": plan.paid_installments,
        "remainingInstallments": plan.remaining_installments,
        "nextDueDate": _iso(plan.next_due_date),
        "version": plan.version,
        "createdAt": plan.created_at.isoformat(),
        "schedule": [entry_to_dto(entry, today, currency) for entry in plan.schedule],
        "guarantors": [guarantor_to_dto(g) for g in guarantors],
    }


def payment_result_to_dto(result: PaymentResult) -> Dict[str, Any]:
    return {
        "message": result.message,
        "overpayment": money(result.overpayment),
        "status": result.status.value,
        "actualPaidAmount": money(result.actual_paid_amount),
        "miscAdjustedAmount": money(result.misc_adjusted_amount),
        "remainingForEntry": money(result.remaining_for_entry),
        "planStatus": result.plan_status.value,
        "paymentId": result.payment_id,
    }


def payment_to_dto(payment: InstallmentPayment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "planId": payment.plan_id,
        "installmentNo": payment.installment_no,
        "amountTendered": money(payment.amount_tendered),
        "cashApplied": money(payment.cash_applied),
        "miscApplied": money(payment.misc_applied),
        "overpayment": money(payment.overpayment),
        "status": payment.resulting_status.value,
        "remainingForEntry": money(payment.remaining_for_entry),
        "paymentMethod": payment.payment_method,
        "notes": payment.notes,
        "paidAt": payment.paid_at.isoformat(),
        "createdBy": payment.created_by,
    }


def transaction_to_dto(transaction: MiscTransaction, customer_name: Optional[str]) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "customerId": transaction.customer_id,
        "customerName": customer_name,
        "transactionType": transaction.transaction_type.value,
        "amount": money(transaction.amount),
        "direction": transaction.direction,
        "balance": money(transaction.balance),
        "description": transaction.description,
        "referenceId": transaction.reference_id,
        "referenceType": transaction.reference_type,
        "createdAt": ledger_timestamp(transaction.created_at),
        "createdBy": transaction.created_by,
    }


def summary_row_to_dto(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "customerId": row["customer_id"],
        "customerName": row["customer_name"],
        "totalCredits": money(row["total_credits"]),
        "totalDebits": money(row["total_debits"]),
        "totalAdjustments": money(row["total_adjustments"]),
        "balance": money(row["balance"]),
        "transactionCount": row["transaction_count"],
        "lastTransaction": ledger_timestamp(row["last_transaction"]),
    }


def customer_to_dto(customer: Customer) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "name": customer.name,
        "phone": customer.phone,
        "cnic": customer.cnic,
        "address": customer.address,
        "miscBalance": money(customer.misc_balance),
    }
