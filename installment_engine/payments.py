"""
Payment Application Module

Applies a payment to one installment: cash first, then (on request) the
customer's misc balance for whatever cash leaves uncovered. Cash beyond what
the installment still owes is banked to the misc balance as an overpayment.

The entry update, ledger draw, overpayment credit, receipt and audit events
are one unit of work. A rejected or failed payment changes nothing.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Any, Callable, Optional
import uuid

from .currency import Currency, ZERO, money_to_string, to_decimal
from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .locks import KeyedLocks
from .ledger import MiscBalanceLedger, INSTALLMENT_REFERENCE, installment_reference
from .plans import InstallmentPayment, PlanStatus, PlanStore, refresh_aggregates
from .schedule_status import EntryStatus
from .errors import (
    AlreadyPaidError, InstallmentError, InvalidPlanStateError, NotFoundError, ValidationError
)
from .logging_config import get_logger, log_action


@dataclass
class PaymentCommand:
    """A request to pay one installment"""
    amount: Any = ZERO
    use_misc_balance: bool = False
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    def validate(self, currency: Currency) -> Decimal:
        """
        Normalize and check the tendered amount

        A zero amount is only meaningful when the misc balance may be drawn.

        Raises:
            ValidationError: If the amount is malformed, negative, finer than
                the currency's minor unit, or zero without a misc draw
        """
        try:
            amount = to_decimal(self.amount if self.amount is not None else ZERO)
        except ValueError:
            raise ValidationError("Payment amount must be a number", {"amount": str(self.amount)})
        if not amount.is_finite():
            raise ValidationError("Payment amount must be a finite number")
        if amount < ZERO:
            raise ValidationError("Payment amount cannot be negative", {"amount": amount})
        if amount != amount.quantize(currency.minor_unit):
            raise ValidationError(
                f"Payment amount has more decimal places than {currency.code} allows",
                {"amount": amount}
            )
        if amount == ZERO and not self.use_misc_balance:
            raise ValidationError("Payment amount must be greater than zero", {"amount": amount})
        return amount.quantize(currency.minor_unit)


@dataclass
class PaymentResult:
    """Outcome of an applied payment, as shown on receipts"""
    message: str
    overpayment: Decimal
    status: EntryStatus
    actual_paid_amount: Decimal
    misc_adjusted_amount: Decimal
    remaining_for_entry: Decimal
    plan_status: PlanStatus
    payment_id: str


class PaymentApplicationEngine:
    """
    Applies payments to plan installments
    """

    def __init__(
        self,
        storage: StorageInterface,
        plan_store: PlanStore,
        ledger: MiscBalanceLedger,
        audit_trail: AuditTrail,
        plan_locks: KeyedLocks,
        customer_locks: KeyedLocks,
        currency: Currency,
        clock: Callable[[], date] = date.today,
        system_user: str = "System"
    ):
        self.storage = storage
        self.plan_store = plan_store
        self.ledger = ledger
        self.audit_trail = audit_trail
        self.plan_locks = plan_locks
        self.customer_locks = customer_locks
        self.currency = currency
        self.clock = clock
        self.system_user = system_user
        self.logger = get_logger("installments.payments")

    def pay(
        self,
        plan_id: str,
        installment_no: int,
        command: PaymentCommand,
        paid_by: Optional[str] = None
    ) -> PaymentResult:
        """
        Apply a payment to one installment

        Args:
            plan_id: Plan to pay against
            installment_no: 1-based installment number
            command: Tendered amount and options
            paid_by: User recorded on receipts and ledger rows

        Returns:
            PaymentResult for the installment after this payment

        Raises:
            ValidationError: Malformed command, or nothing to apply
            NotFoundError: Unknown plan or installment
            InvalidPlanStateError: Plan is not active
            AlreadyPaidError: Installment has nothing left to pay
            ConcurrencyConflictError: Plan changed under this writer
        """
        try:
            amount = command.validate(self.currency)
            with self.plan_locks.hold(plan_id):
                plan = self.plan_store.load(plan_id)
                if plan is None:
                    raise NotFoundError(f"Plan {plan_id} not found", {"planId": plan_id})
                # customer lock before the storage lock, as manual ledger writes take them
                with self.customer_locks.hold(plan.customer_id):
                    with self.storage.atomic():
                        result = self._apply(plan_id, installment_no, command, amount, paid_by)
        except InstallmentError as e:
            log_action(
                self.logger, "warning", f"Payment rejected: {e.message}",
                action="pay_rejected", resource=f"plan:{plan_id}", user_id=paid_by,
                extra={"installment_no": installment_no, "error": e.code, **e.details}
            )
            raise

        log_action(
            self.logger, "info", result.message,
            action="pay_installment", resource=f"plan:{plan_id}", user_id=paid_by,
            extra={
                "installment_no": installment_no,
                "payment_id": result.payment_id,
                "amount": str(amount),
                "overpayment": str(result.overpayment),
                "status": result.status.value,
                "plan_status": result.plan_status.value
            }
        )
        return result

    def _apply(
        self,
        plan_id: str,
        installment_no: int,
        command: PaymentCommand,
        amount: Decimal,
        paid_by: Optional[str]
    ) -> PaymentResult:
        # Re-read inside the unit of work
        plan = self.plan_store.load(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found", {"planId": plan_id})
        today = self.clock()
        entry = plan.entry(installment_no)
        if not plan.is_active:
            details = {"planId": plan_id, "planStatus": plan.status.value}
            if entry is not None:
                details["remainingDue"] = max(entry.emi_amount - entry.applied_amount, ZERO)
                details["status"] = entry.status_on(today, self.currency).value
            raise InvalidPlanStateError(
                f"Plan is {plan.status.value}; payments are only accepted on active plans", details
            )

        if entry is None:
            raise NotFoundError(
                f"Installment {installment_no} not found on plan {plan_id}",
                {"planId": plan_id, "installmentNo": installment_no}
            )

        remaining_due = entry.emi_amount - entry.applied_amount
        if remaining_due <= ZERO:
            raise AlreadyPaidError(
                f"Installment {installment_no} is already paid",
                {"remainingDue": ZERO, "status": entry.status_on(today, self.currency).value}
            )

        reference_id = installment_reference(plan_id, installment_no)
        created_by = paid_by or self.system_user

        cash_applied = min(amount, remaining_due)
        misc_needed = ZERO
        if command.use_misc_balance and amount < remaining_due:
            available = self.ledger.balance_of(plan.customer_id)
            misc_needed = min(remaining_due - amount, available)

        if cash_applied + misc_needed <= ZERO:
            raise ValidationError(
                "Nothing to apply: no cash tendered and no misc balance available",
                {"remainingDue": remaining_due, "status": entry.status_on(today, self.currency).value}
            )

        if misc_needed > ZERO:
            self.ledger.debit(
                plan.customer_id, misc_needed,
                f"Misc balance applied to installment #{installment_no}",
                reference_type=INSTALLMENT_REFERENCE,
                reference_id=reference_id,
                created_by=created_by
            )

        overpayment = amount - cash_applied
        if overpayment > ZERO:
            self.ledger.credit(
                plan.customer_id, overpayment,
                f"Overpayment on installment #{installment_no}",
                reference_type=INSTALLMENT_REFERENCE,
                reference_id=reference_id,
                created_by=created_by
            )

        entry.actual_paid_amount += cash_applied
        entry.misc_adjusted_amount += misc_needed
        entry.paid_date = today
        remaining_for_entry = remaining_due - cash_applied - misc_needed

        completed = refresh_aggregates(plan, today, self.currency)
        status = entry.status_on(today, self.currency)
        self.plan_store.save(plan, expected_version=plan.version)

        now = datetime.now(timezone.utc)
        payment = InstallmentPayment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            plan_id=plan_id,
            customer_id=plan.customer_id,
            installment_no=installment_no,
            amount_tendered=amount,
            cash_applied=cash_applied,
            misc_applied=misc_needed,
            overpayment=overpayment,
            resulting_status=status,
            remaining_for_entry=remaining_for_entry,
            paid_at=today,
            payment_method=command.payment_method,
            notes=command.notes,
            created_by=created_by
        )
        self.plan_store.save_payment(payment)

        self.audit_trail.log_event(
            event_type=AuditEventType.INSTALLMENT_PAYMENT_APPLIED,
            entity_type="plan",
            entity_id=plan_id,
            metadata={
                "payment_id": payment.id,
                "installment_no": installment_no,
                "amount": amount,
                "cash_applied": cash_applied,
                "misc_applied": misc_needed,
                "overpayment": overpayment,
                "status": status.value
            },
            user_id=created_by
        )
        if completed:
            self.audit_trail.log_event(
                event_type=AuditEventType.PLAN_COMPLETED,
                entity_type="plan",
                entity_id=plan_id,
                metadata={"paid_installments": plan.paid_installments},
                user_id=created_by
            )

        if status == EntryStatus.PARTIAL:
            message = f"Partial payment recorded. Remaining: {money_to_string(remaining_for_entry, self.currency)}"
        else:
            message = "Payment processed successfully"

        return PaymentResult(
            message=message,
            overpayment=overpayment,
            status=status,
            actual_paid_amount=entry.actual_paid_amount,
            misc_adjusted_amount=entry.misc_adjusted_amount,
            remaining_for_entry=remaining_for_entry if status == EntryStatus.PARTIAL else ZERO,
            plan_status=plan.status,
            payment_id=payment.id
        )
