"""
Test suite for installment plans

Tests plan creation from the shared calculator, aggregates, cancellation,
paged listing, guarantors and the optimistic version check.
"""

import pytest
from decimal import Decimal
from datetime import date

from installment_engine.currency import Currency
from installment_engine.storage import InMemoryStorage
from installment_engine.audit import AuditTrail, AuditEventType
from installment_engine.customers import CustomerManager
from installment_engine.locks import KeyedLocks
from installment_engine.amortization import AmortizationCalculator, PlanTerms
from installment_engine.schedule_status import EntryStatus
from installment_engine.plans import InstallmentPlanManager, PlanStatus, PlanStore
from installment_engine.errors import (
    ConcurrencyConflictError, InvalidPlanStateError, NotFoundError, ValidationError
)


TODAY = date(2024, 1, 15)


def make_terms(**overrides) -> PlanTerms:
    values = dict(
        product_price=Decimal('12000'),
        down_payment=Decimal('2000'),
        interest_rate=Decimal('12'),
        tenure=6,
        start_date=date(2024, 1, 1)
    )
    values.update(overrides)
    return PlanTerms(**values)


class PlanTestBase:
    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.plan_store = PlanStore(self.storage)
        self.manager = InstallmentPlanManager(
            self.storage, self.plan_store, AmortizationCalculator(Currency.PKR),
            self.customer_manager, self.audit_trail, KeyedLocks("plan"),
            clock=lambda: TODAY
        )
        self.customer = self.customer_manager.create_customer(
            "Ali Khan", phone="0300-1234567", cnic="35202-1234567-1"
        )


class TestPlanCreation(PlanTestBase):
    """Test plan creation"""

    def test_create_matches_preview(self):
        """Test committed schedule equals the previewed one"""
        quote = self.manager.preview(make_terms())
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())

        assert plan.total_payable == quote.total_payable
        assert plan.emi_amount == quote.emi_amount
        assert [(e.installment_no, e.due_date, e.emi_amount, e.principal, e.interest, e.balance)
                for e in plan.schedule] == [
            (l.installment_no, l.due_date, l.emi_amount, l.principal, l.interest, l.balance)
            for l in quote.schedule
        ]

    def test_initial_aggregates(self):
        """Test a fresh plan's counters"""
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())

        assert plan.status == PlanStatus.ACTIVE
        assert plan.paid_installments == 0
        assert plan.remaining_installments == 6
        assert plan.next_due_date == date(2024, 2, 1)
        assert plan.version == 1

    def test_round_trip_through_storage(self):
        """Test stored plan reads back identically"""
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        loaded = self.manager.get_plan(plan.id)

        assert loaded.schedule == plan.schedule
        assert loaded.total_payable == Decimal('10600.00')
        assert loaded.schedule[0].status_on(TODAY, Currency.PKR) == EntryStatus.UPCOMING

    def test_unknown_customer(self):
        with pytest.raises(NotFoundError):
            self.manager.create_plan("missing", "prod-1", make_terms())

    def test_product_required(self):
        with pytest.raises(ValidationError):
            self.manager.create_plan(self.customer.id, "", make_terms())

    def test_invalid_terms_persist_nothing(self):
        """Test validation happens before any write"""
        with pytest.raises(ValidationError):
            self.manager.create_plan(self.customer.id, "prod-1", make_terms(tenure=0))
        assert self.manager.list_plans() == []

    def test_zero_financed_plan_completed(self):
        """Test a fully paid-down purchase completes at creation"""
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms(down_payment=Decimal('12000')))

        assert plan.status == PlanStatus.COMPLETED
        assert plan.paid_installments == 6
        assert plan.next_due_date is None

    def test_creation_audited(self):
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        events = self.audit_trail.get_events_for_entity("plan", plan.id)
        assert [e.event_type for e in events] == [AuditEventType.PLAN_CREATED]


class TestPlanLifecycle(PlanTestBase):
    """Test cancellation and default"""

    def test_cancel_keeps_schedule(self):
        """Test cancel is a status change"""
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        cancelled = self.manager.cancel_plan(plan.id)

        assert cancelled.status == PlanStatus.CANCELLED
        loaded = self.manager.get_plan(plan.id)
        assert loaded.status == PlanStatus.CANCELLED
        assert len(loaded.schedule) == 6
        assert loaded.version == 2

    def test_cancel_twice_rejected(self):
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        self.manager.cancel_plan(plan.id)
        with pytest.raises(InvalidPlanStateError):
            self.manager.cancel_plan(plan.id)

    def test_mark_defaulted(self):
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        assert self.manager.mark_defaulted(plan.id).status == PlanStatus.DEFAULTED
        with pytest.raises(InvalidPlanStateError):
            self.manager.cancel_plan(plan.id)

    def test_cancel_unknown(self):
        with pytest.raises(NotFoundError):
            self.manager.cancel_plan("missing")


class TestVersionCheck(PlanTestBase):
    """Test optimistic concurrency on plan saves"""

    def test_stale_save_rejected(self):
        """Test a writer holding an old copy loses"""
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        first = self.plan_store.load(plan.id)
        second = self.plan_store.load(plan.id)

        self.plan_store.save(first, expected_version=first.version)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            self.plan_store.save(second, expected_version=second.version)
        assert exc_info.value.details["actualVersion"] == 2


class TestPlanListing(PlanTestBase):
    """Test plain and paged listing"""

    def _create_many(self, count):
        other = self.customer_manager.create_customer("Bilal Raza", phone="0311-7654321")
        plans = []
        for i in range(count):
            owner = self.customer if i % 2 == 0 else other
            plans.append(self.manager.create_plan(owner.id, f"prod-{i}", make_terms(tenure=i + 1)))
        return plans, other

    def test_list_newest_first(self):
        plans, _ = self._create_many(3)
        assert [p.id for p in self.manager.list_plans()] == [p.id for p in reversed(plans)]

    def test_list_by_customer(self):
        plans, other = self._create_many(4)
        assert {p.id for p in self.manager.list_plans(other.id)} == {plans[1].id, plans[3].id}

    def test_paging(self):
        """Test page slicing and counts"""
        self._create_many(12)
        result = self.manager.list_plans_paged(page=2, page_size=5)

        assert result["total_count"] == 12
        assert result["total_pages"] == 3
        assert len(result["items"]) == 5
        assert result["page"] == 2

    def test_page_size_clamped(self):
        """Test out-of-range page parameters"""
        self._create_many(3)
        assert self.manager.list_plans_paged(page=0, page_size=0)["page_size"] == 10
        assert self.manager.list_plans_paged(page=-1)["page"] == 1
        assert self.manager.list_plans_paged(page_size=1000)["page_size"] == 100

    def test_search_by_customer_name_and_phone(self):
        plans, other = self._create_many(4)
        assert result_ids(self.manager.list_plans_paged(search="bilal")) == {plans[1].id, plans[3].id}
        assert result_ids(self.manager.list_plans_paged(search="ali khan")) == {plans[0].id, plans[2].id}
        assert result_ids(self.manager.list_plans_paged(search="prod-3")) == {plans[3].id}

    def test_status_filter(self):
        plans, _ = self._create_many(3)
        self.manager.cancel_plan(plans[0].id)
        assert result_ids(self.manager.list_plans_paged(status="cancelled")) == {plans[0].id}
        with pytest.raises(ValidationError):
            self.manager.list_plans_paged(status="bogus")

    def test_sorting(self):
        self._create_many(4)
        result = self.manager.list_plans_paged(sort_by="tenure", sort_desc=False)
        assert [p.tenure for p in result["items"]] == [1, 2, 3, 4]
        with pytest.raises(ValidationError):
            self.manager.list_plans_paged(sort_by="password")


def result_ids(result):
    return {p.id for p in result["items"]}


class TestGuarantors(PlanTestBase):
    """Test guarantor attachments"""

    def test_add_update_delete(self):
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())

        guarantor = self.manager.add_guarantor(
            plan.id, "Usman Tariq", so="Tariq Mehmood", phone="0321-0000000",
            relationship="Brother", picture="uploads/guarantors/usman.jpg"
        )
        assert [g.id for g in self.manager.guarantors_for(plan.id)] == [guarantor.id]

        updated = self.manager.update_guarantor(guarantor.id, "Usman Tariq", phone="0321-1111111")
        assert updated.phone == "0321-1111111"
        assert updated.picture == "uploads/guarantors/usman.jpg"

        self.manager.delete_guarantor(guarantor.id)
        assert self.manager.guarantors_for(plan.id) == []

        events = self.audit_trail.get_events_for_entity("guarantor", guarantor.id)
        assert [e.event_type for e in events] == [
            AuditEventType.GUARANTOR_ADDED, AuditEventType.GUARANTOR_UPDATED, AuditEventType.GUARANTOR_REMOVED
        ]

    def test_guarantor_needs_plan_and_name(self):
        plan = self.manager.create_plan(self.customer.id, "prod-1", make_terms())
        with pytest.raises(NotFoundError):
            self.manager.add_guarantor("missing", "Someone")
        with pytest.raises(ValidationError):
            self.manager.add_guarantor(plan.id, "")
        with pytest.raises(NotFoundError):
            self.manager.delete_guarantor("missing")
