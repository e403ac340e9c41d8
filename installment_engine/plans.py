"""
Installment Plan Module

Plans, their repayment schedules and attached guarantors. A plan and its
schedule are one stored document, written through `PlanStore` with an
optimistic version check. Schedule entries are created with the plan and only
their payment facts ever change afterwards (see payments.py).
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import math
import uuid

from .currency import Currency, ZERO
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .customers import CustomerManager
from .locks import KeyedLocks
from .amortization import AmortizationCalculator, PlanQuote, PlanTerms
from .schedule_status import EntryStatus, resolve_status
from .errors import ConcurrencyConflictError, InvalidPlanStateError, NotFoundError, ValidationError
from .logging_config import get_logger, log_action


class PlanStatus(Enum):
    """Plan lifecycle states"""
    ACTIVE = "active"          # Accepting payments
    COMPLETED = "completed"    # Every installment paid
    DEFAULTED = "defaulted"    # Administrative write-off
    CANCELLED = "cancelled"    # Cancelled, schedule frozen


@dataclass
class RepaymentEntry:
    """One installment of a plan's schedule"""
    installment_no: int
    due_date: date
    emi_amount: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal

    # Payment facts, moved only by the payment engine
    actual_paid_amount: Decimal = ZERO
    misc_adjusted_amount: Decimal = ZERO
    paid_date: Optional[date] = None

    @property
    def applied_amount(self) -> Decimal:
        return self.actual_paid_amount + self.misc_adjusted_amount

    @property
    def remaining_due(self) -> Decimal:
        return max(ZERO, self.emi_amount - self.applied_amount)

    def status_on(self, today: date, currency: Currency) -> EntryStatus:
        return resolve_status(
            self.emi_amount,
            self.actual_paid_amount,
            self.misc_adjusted_amount,
            self.due_date,
            today,
            currency
        )


@dataclass
class Guarantor(StorageRecord):
    """Person standing surety for a plan"""
    plan_id: str
    name: str
    so: Optional[str] = None          # Son/daughter of
    phone: Optional[str] = None
    cnic: Optional[str] = None
    address: Optional[str] = None
    relationship: Optional[str] = None
    picture: Optional[str] = None     # Stored file path


@dataclass
class InstallmentPlan(StorageRecord):
    """Installment plan with its schedule and running aggregates"""
    customer_id: str
    product_id: str

    # Terms
    product_price: Decimal
    finance_amount: Optional[Decimal]
    down_payment: Decimal
    interest_rate: Decimal
    tenure: int
    start_date: date

    # Fixed at creation
    financed_amount: Decimal
    emi_amount: Decimal
    total_interest: Decimal
    total_payable: Decimal

    schedule: List[RepaymentEntry] = field(default_factory=list)

    # Recomputed after every payment
    status: PlanStatus = PlanStatus.ACTIVE
    paid_installments: int = 0
    remaining_installments: int = 0
    next_due_date: Optional[date] = None

    version: int = 0
    created_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == PlanStatus.ACTIVE

    def entry(self, installment_no: int) -> Optional[RepaymentEntry]:
        for entry in self.schedule:
            if entry.installment_no == installment_no:
                return entry
        return None


@dataclass
class InstallmentPayment(StorageRecord):
    """Receipt for one applied payment"""
    plan_id: str
    customer_id: str
    installment_no: int
    amount_tendered: Decimal
    cash_applied: Decimal
    misc_applied: Decimal
    overpayment: Decimal
    resulting_status: EntryStatus
    remaining_for_entry: Decimal
    paid_at: date
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


def refresh_aggregates(plan: InstallmentPlan, today: date, currency: Currency) -> bool:
    """
    Recompute paid/remaining counts, next due date and completion

    Returns:
        True if this call moved the plan to completed
    """
    unpaid = [e for e in plan.schedule if e.status_on(today, currency) != EntryStatus.PAID]
    plan.paid_installments = len(plan.schedule) - len(unpaid)
    plan.remaining_installments = plan.tenure - plan.paid_installments
    plan.next_due_date = min((e.due_date for e in unpaid), default=None)

    if plan.status == PlanStatus.ACTIVE and not unpaid:
        plan.status = PlanStatus.COMPLETED
        return True
    return False


class PlanStore:
    """
    Persistence boundary for plans and payment receipts
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "installment_plans"
        self.payments_table = "installment_payments"

    def save(self, plan: InstallmentPlan, expected_version: int) -> InstallmentPlan:
        """
        Write plan if the stored version still equals expected_version

        Raises:
            ConcurrencyConflictError: If another writer saved the plan first
        """
        with self.storage.atomic():
            stored = self.storage.load(self.table_name, plan.id)
            stored_version = stored.get('version', 0) if stored else 0
            if stored_version != expected_version:
                raise ConcurrencyConflictError(
                    f"Plan {plan.id} was modified concurrently",
                    {"planId": plan.id, "expectedVersion": expected_version, "actualVersion": stored_version}
                )

            plan.version = expected_version + 1
            plan.updated_at = datetime.now(timezone.utc)
            self.storage.save(self.table_name, plan.id, self._plan_to_dict(plan))
        return plan

    def load(self, plan_id: str) -> Optional[InstallmentPlan]:
        data = self.storage.load(self.table_name, plan_id)
        if data:
            return self._plan_from_dict(data)
        return None

    def list_all(self) -> List[InstallmentPlan]:
        """All plans, newest first"""
        # Reversed load order first, so plans created in the same instant stay newest first
        plans = [self._plan_from_dict(data) for data in reversed(self.storage.load_all(self.table_name))]
        plans.sort(key=lambda p: p.created_at, reverse=True)
        return plans

    def find_by_customer(self, customer_id: str) -> List[InstallmentPlan]:
        plans = [self._plan_from_dict(data)
                 for data in reversed(self.storage.find(self.table_name, {'customer_id': customer_id}))]
        plans.sort(key=lambda p: p.created_at, reverse=True)
        return plans

    def save_payment(self, payment: InstallmentPayment) -> None:
        self.storage.save(self.payments_table, payment.id, self._payment_to_dict(payment))

    def payments_for(self, plan_id: str) -> List[InstallmentPayment]:
        """Receipts for a plan in the order they were taken"""
        payments = [self._payment_from_dict(data)
                    for data in self.storage.find(self.payments_table, {'plan_id': plan_id})]
        payments.sort(key=lambda p: p.created_at)
        return payments

    # ── Serialization ─────────────────────────────────────

    def _plan_to_dict(self, plan: InstallmentPlan) -> Dict:
        result = plan.base_dict()
        result.update({
            'customer_id': plan.customer_id,
            'product_id': plan.product_id,
            'product_price': str(plan.product_price),
            'finance_amount': str(plan.finance_amount) if plan.finance_amount is not None else None,
            'down_payment': str(plan.down_payment),
            'interest_rate': str(plan.interest_rate),
            'tenure': plan.tenure,
            'start_date': plan.start_date.isoformat(),
            'financed_amount': str(plan.financed_amount),
            'emi_amount': str(plan.emi_amount),
            'total_interest': str(plan.total_interest),
            'total_payable': str(plan.total_payable),
            'schedule': [self._entry_to_dict(entry) for entry in plan.schedule],
            'status': plan.status.value,
            'paid_installments': plan.paid_installments,
            'remaining_installments': plan.remaining_installments,
            'next_due_date': plan.next_due_date.isoformat() if plan.next_due_date else None,
            'version': plan.version,
            'created_by': plan.created_by,
        })
        return result

    def _plan_from_dict(self, data: Dict) -> InstallmentPlan:
        return InstallmentPlan(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            customer_id=data['customer_id'],
            product_id=data['product_id'],
            product_price=Decimal(data['product_price']),
            finance_amount=Decimal(data['finance_amount']) if data.get('finance_amount') else None,
            down_payment=Decimal(data['down_payment']),
            interest_rate=Decimal(data['interest_rate']),
            tenure=data['tenure'],
            start_date=date.fromisoformat(data['start_date']),
            financed_amount=Decimal(data['financed_amount']),
            emi_amount=Decimal(data['emi_amount']),
            total_interest=Decimal(data['total_interest']),
            total_payable=Decimal(data['total_payable']),
            schedule=[self._entry_from_dict(entry) for entry in data.get('schedule', [])],
            status=PlanStatus(data['status']),
            paid_installments=data.get('paid_installments', 0),
            remaining_installments=data.get('remaining_installments', 0),
            next_due_date=date.fromisoformat(data['next_due_date']) if data.get('next_due_date') else None,
            version=data.get('version', 0),
            created_by=data.get('created_by')
        )

    def _entry_to_dict(self, entry: RepaymentEntry) -> Dict[str, Any]:
        return {
            'installment_no': entry.installment_no,
            'due_date': entry.due_date.isoformat(),
            'emi_amount': str(entry.emi_amount),
            'principal': str(entry.principal),
            'interest': str(entry.interest),
            'balance': str(entry.balance),
            'actual_paid_amount': str(entry.actual_paid_amount),
            'misc_adjusted_amount': str(entry.misc_adjusted_amount),
            'paid_date': entry.paid_date.isoformat() if entry.paid_date else None,
        }

    def _entry_from_dict(self, data: Dict[str, Any]) -> RepaymentEntry:
        return RepaymentEntry(
            installment_no=data['installment_no'],
            due_date=date.fromisoformat(data['due_date']),
            emi_amount=Decimal(data['emi_amount']),
            principal=Decimal(data['principal']),
            interest=Decimal(data['interest']),
            balance=Decimal(data['balance']),
            actual_paid_amount=Decimal(data.get('actual_paid_amount', '0')),
            misc_adjusted_amount=Decimal(data.get('misc_adjusted_amount', '0')),
            paid_date=date.fromisoformat(data['paid_date']) if data.get('paid_date') else None
        )

    def _payment_to_dict(self, payment: InstallmentPayment) -> Dict:
        result = payment.base_dict()
        result.update({
            'plan_id': payment.plan_id,
            'customer_id': payment.customer_id,
            'installment_no': payment.installment_no,
            'amount_tendered': str(payment.amount_tendered),
            'cash_applied': str(payment.cash_applied),
            'misc_applied': str(payment.misc_applied),
            'overpayment': str(payment.overpayment),
            'resulting_status': payment.resulting_status.value,
            'remaining_for_entry': str(payment.remaining_for_entry),
            'paid_at': payment.paid_at.isoformat(),
            'payment_method': payment.payment_method,
            'notes': payment.notes,
            'created_by': payment.created_by,
        })
        return result

    def _payment_from_dict(self, data: Dict) -> InstallmentPayment:
        return InstallmentPayment(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            plan_id=data['plan_id'],
            customer_id=data['customer_id'],
            installment_no=data['installment_no'],
            amount_tendered=Decimal(data['amount_tendered']),
            cash_applied=Decimal(data['cash_applied']),
            misc_applied=Decimal(data['misc_applied']),
            overpayment=Decimal(data['overpayment']),
            resulting_status=EntryStatus(data['resulting_status']),
            remaining_for_entry=Decimal(data['remaining_for_entry']),
            paid_at=date.fromisoformat(data['paid_at']),
            payment_method=data.get('payment_method'),
            notes=data.get('notes'),
            created_by=data.get('created_by')
        )


SORTABLE_FIELDS = {
    "created_at": lambda p: p.created_at,
    "start_date": lambda p: p.start_date,
    "total_payable": lambda p: p.total_payable,
    "emi_amount": lambda p: p.emi_amount,
    "tenure": lambda p: p.tenure,
    "next_due_date": lambda p: (p.next_due_date is None, p.next_due_date or date.min),
}


class InstallmentPlanManager:
    """
    Plan lifecycle: preview, creation, listing, cancellation, guarantors
    """

    def __init__(
        self,
        storage: StorageInterface,
        plan_store: PlanStore,
        calculator: AmortizationCalculator,
        customer_manager: CustomerManager,
        audit_trail: AuditTrail,
        plan_locks: KeyedLocks,
        clock: Callable[[], date] = date.today,
        default_page_size: int = 10,
        max_page_size: int = 100
    ):
        self.storage = storage
        self.plan_store = plan_store
        self.calculator = calculator
        self.customer_manager = customer_manager
        self.audit_trail = audit_trail
        self.plan_locks = plan_locks
        self.clock = clock
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.guarantors_table = "guarantors"
        self.logger = get_logger("installments.plans")

    @property
    def currency(self) -> Currency:
        return self.calculator.currency

    def preview(self, terms: PlanTerms) -> PlanQuote:
        """Quote terms without persisting anything"""
        return self.calculator.calculate(terms)

    def create_plan(
        self,
        customer_id: str,
        product_id: str,
        terms: PlanTerms,
        created_by: Optional[str] = None
    ) -> InstallmentPlan:
        """
        Create a plan and its full schedule in one write

        Args:
            customer_id: Buyer; must exist
            product_id: Financed product reference
            terms: Purchase terms, quoted exactly as preview() would

        Returns:
            Created InstallmentPlan
        """
        if not product_id or not str(product_id).strip():
            raise ValidationError("Product is required", {"field": "productId"})
        quote = self.calculator.calculate(terms)
        self.customer_manager.require_customer(customer_id)

        now = datetime.now(timezone.utc)
        plan = InstallmentPlan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            customer_id=customer_id,
            product_id=str(product_id),
            product_price=quote.product_price,
            finance_amount=quote.finance_amount,
            down_payment=quote.down_payment,
            interest_rate=quote.interest_rate,
            tenure=quote.tenure,
            start_date=quote.start_date,
            financed_amount=quote.financed_amount,
            emi_amount=quote.emi_amount,
            total_interest=quote.total_interest,
            total_payable=quote.total_payable,
            schedule=[
                RepaymentEntry(
                    installment_no=line.installment_no,
                    due_date=line.due_date,
                    emi_amount=line.emi_amount,
                    principal=line.principal,
                    interest=line.interest,
                    balance=line.balance
                )
                for line in quote.schedule
            ],
            created_by=created_by
        )
        completed = refresh_aggregates(plan, self.clock(), self.currency)

        with self.storage.atomic():
            self.plan_store.save(plan, expected_version=0)
            self.audit_trail.log_event(
                event_type=AuditEventType.PLAN_CREATED,
                entity_type="plan",
                entity_id=plan.id,
                metadata={
                    "customer_id": customer_id,
                    "product_id": plan.product_id,
                    "financed_amount": plan.financed_amount,
                    "total_payable": plan.total_payable,
                    "emi_amount": plan.emi_amount,
                    "tenure": plan.tenure
                },
                user_id=created_by
            )
            if completed:
                self.audit_trail.log_event(
                    event_type=AuditEventType.PLAN_COMPLETED,
                    entity_type="plan",
                    entity_id=plan.id,
                    metadata={"reason": "nothing_financed"},
                    user_id=created_by
                )

        log_action(
            self.logger, "info", "Installment plan created",
            action="create_plan", resource=f"plan:{plan.id}", user_id=created_by,
            extra={
                "customer_id": customer_id,
                "financed_amount": str(plan.financed_amount),
                "total_payable": str(plan.total_payable),
                "tenure": plan.tenure,
                "status": plan.status.value
            }
        )
        return plan

    def get_plan(self, plan_id: str) -> Optional[InstallmentPlan]:
        return self.plan_store.load(plan_id)

    def require_plan(self, plan_id: str) -> InstallmentPlan:
        plan = self.plan_store.load(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found", {"planId": plan_id})
        return plan

    def list_plans(self, customer_id: Optional[str] = None) -> List[InstallmentPlan]:
        """Plans newest first, optionally for one customer"""
        if customer_id:
            return self.plan_store.find_by_customer(customer_id)
        return self.plan_store.list_all()

    def list_plans_paged(
        self,
        page: int = 1,
        page_size: Optional[int] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_desc: bool = True
    ) -> Dict[str, Any]:
        """
        One page of plans

        Page numbers below 1 read page 1; page sizes outside 1..max fall back
        to the default or the maximum. Search matches plan id, product id and
        the customer's name, phone or CNIC.

        Returns:
            Dictionary with items, total_count, page, page_size, total_pages
        """
        page = page if page and page >= 1 else 1
        if not page_size or page_size < 1:
            page_size = self.default_page_size
        page_size = min(page_size, self.max_page_size)

        sort_key = SORTABLE_FIELDS.get(sort_by or "created_at")
        if sort_key is None:
            raise ValidationError(
                f"Cannot sort plans by {sort_by}",
                {"sortBy": sort_by, "allowed": sorted(SORTABLE_FIELDS)}
            )

        plans = self.plan_store.list_all()

        if status:
            try:
                wanted = PlanStatus(status.lower())
            except ValueError:
                raise ValidationError(f"Unknown plan status: {status}", {"status": status})
            plans = [p for p in plans if p.status == wanted]

        if search and search.strip():
            needle = search.strip().lower()
            customers = {c.id: c for c in self.customer_manager.list_customers()}
            plans = [p for p in plans if self._matches(p, customers.get(p.customer_id), needle)]

        plans.sort(key=sort_key, reverse=sort_desc)

        total_count = len(plans)
        start = (page - 1) * page_size
        return {
            "items": plans[start:start + page_size],
            "total_count": total_count,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total_count / page_size)
        }

    @staticmethod
    def _matches(plan: InstallmentPlan, customer, needle: str) -> bool:
        haystack = [plan.id, plan.product_id]
        if customer is not None:
            haystack.extend([customer.name, customer.phone or "", customer.cnic or ""])
        return any(needle in value.lower() for value in haystack)

    def cancel_plan(self, plan_id: str, cancelled_by: Optional[str] = None) -> InstallmentPlan:
        """Move an active plan to cancelled; the schedule is kept as is"""
        return self._transition(plan_id, PlanStatus.CANCELLED, AuditEventType.PLAN_CANCELLED, cancelled_by)

    def mark_defaulted(self, plan_id: str, marked_by: Optional[str] = None) -> InstallmentPlan:
        """Administrative move of an active plan to defaulted"""
        return self._transition(plan_id, PlanStatus.DEFAULTED, AuditEventType.PLAN_DEFAULTED, marked_by)

    def _transition(
        self,
        plan_id: str,
        target: PlanStatus,
        event_type: AuditEventType,
        user_id: Optional[str]
    ) -> InstallmentPlan:
        with self.plan_locks.hold(plan_id):
            with self.storage.atomic():
                plan = self.require_plan(plan_id)
                if not plan.is_active:
                    raise InvalidPlanStateError(
                        f"Plan is {plan.status.value}; only active plans can be {target.value}",
                        {"planId": plan_id, "planStatus": plan.status.value}
                    )
                previous = plan.status
                plan.status = target
                self.plan_store.save(plan, expected_version=plan.version)
                self.audit_trail.log_event(
                    event_type=event_type,
                    entity_type="plan",
                    entity_id=plan_id,
                    metadata={"old_status": previous.value, "new_status": target.value},
                    user_id=user_id
                )

        log_action(
            self.logger, "info", f"Installment plan {target.value}",
            action=f"plan_{target.value}", resource=f"plan:{plan_id}", user_id=user_id
        )
        return plan

    # ── Guarantors ────────────────────────────────────────

    def add_guarantor(
        self,
        plan_id: str,
        name: str,
        so: Optional[str] = None,
        phone: Optional[str] = None,
        cnic: Optional[str] = None,
        address: Optional[str] = None,
        relationship: Optional[str] = None,
        picture: Optional[str] = None
    ) -> Guarantor:
        self.require_plan(plan_id)
        if not name or not name.strip():
            raise ValidationError("Guarantor name is required", {"field": "name"})

        now = datetime.now(timezone.utc)
        guarantor = Guarantor(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            plan_id=plan_id,
            name=name.strip(),
            so=so,
            phone=phone,
            cnic=cnic,
            address=address,
            relationship=relationship,
            picture=picture
        )

        with self.storage.atomic():
            self._save_guarantor(guarantor)
            self.audit_trail.log_event(
                event_type=AuditEventType.GUARANTOR_ADDED,
                entity_type="guarantor",
                entity_id=guarantor.id,
                metadata={"plan_id": plan_id, "name": guarantor.name}
            )

        log_action(
            self.logger, "info", "Guarantor added",
            action="add_guarantor", resource=f"plan:{plan_id}",
            extra={"guarantor_id": guarantor.id}
        )
        return guarantor

    def update_guarantor(
        self,
        guarantor_id: str,
        name: str,
        so: Optional[str] = None,
        phone: Optional[str] = None,
        cnic: Optional[str] = None,
        address: Optional[str] = None,
        relationship: Optional[str] = None,
        picture: Optional[str] = None
    ) -> Guarantor:
        """Replace a guarantor's details; the picture is kept unless a new one is given"""
        guarantor = self.require_guarantor(guarantor_id)
        if not name or not name.strip():
            raise ValidationError("Guarantor name is required", {"field": "name"})

        guarantor.name = name.strip()
        guarantor.so = so
        guarantor.phone = phone
        guarantor.cnic = cnic
        guarantor.address = address
        guarantor.relationship = relationship
        if picture is not None:
            guarantor.picture = picture
        guarantor.updated_at = datetime.now(timezone.utc)

        with self.storage.atomic():
            self._save_guarantor(guarantor)
            self.audit_trail.log_event(
                event_type=AuditEventType.GUARANTOR_UPDATED,
                entity_type="guarantor",
                entity_id=guarantor.id,
                metadata={"plan_id": guarantor.plan_id, "name": guarantor.name}
            )
        return guarantor

    def delete_guarantor(self, guarantor_id: str) -> None:
        guarantor = self.require_guarantor(guarantor_id)
        with self.storage.atomic():
            self.storage.delete(self.guarantors_table, guarantor_id)
            self.audit_trail.log_event(
                event_type=AuditEventType.GUARANTOR_REMOVED,
                entity_type="guarantor",
                entity_id=guarantor_id,
                metadata={"plan_id": guarantor.plan_id, "name": guarantor.name}
            )

        log_action(
            self.logger, "info", "Guarantor removed",
            action="delete_guarantor", resource=f"plan:{guarantor.plan_id}",
            extra={"guarantor_id": guarantor_id}
        )

    def require_guarantor(self, guarantor_id: str) -> Guarantor:
        data = self.storage.load(self.guarantors_table, guarantor_id)
        if not data:
            raise NotFoundError(f"Guarantor {guarantor_id} not found", {"guarantorId": guarantor_id})
        return self._guarantor_from_dict(data)

    def guarantors_for(self, plan_id: str) -> List[Guarantor]:
        guarantors = [self._guarantor_from_dict(data)
                      for data in self.storage.find(self.guarantors_table, {'plan_id': plan_id})]
        guarantors.sort(key=lambda g: g.created_at)
        return guarantors

    def payments_for(self, plan_id: str) -> List[InstallmentPayment]:
        """Receipt history of a plan"""
        self.require_plan(plan_id)
        return self.plan_store.payments_for(plan_id)

    def _save_guarantor(self, guarantor: Guarantor) -> None:
        data = guarantor.base_dict()
        data.update({
            'plan_id': guarantor.plan_id,
            'name': guarantor.name,
            'so': guarantor.so,
            'phone': guarantor.phone,
            'cnic': guarantor.cnic,
            'address': guarantor.address,
            'relationship': guarantor.relationship,
            'picture': guarantor.picture,
        })
        self.storage.save(self.guarantors_table, guarantor.id, data)

    def _guarantor_from_dict(self, data: Dict) -> Guarantor:
        return Guarantor(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            plan_id=data['plan_id'],
            name=data['name'],
            so=data.get('so'),
            phone=data.get('phone'),
            cnic=data.get('cnic'),
            address=data.get('address'),
            relationship=data.get('relationship'),
            picture=data.get('picture')
        )
