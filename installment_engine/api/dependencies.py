"""
Shared application dependencies
"""

from datetime import date
from typing import Callable, Optional

from ..config import FinanceConfig, get_config
from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..customers import CustomerManager
from ..locks import KeyedLocks
from ..ledger import MiscBalanceLedger
from ..amortization import AmortizationCalculator
from ..plans import PlanStore, InstallmentPlanManager
from ..payments import PaymentApplicationEngine


class FinanceSystem:
    """Installment engine with all components initialized"""

    def __init__(
        self,
        config: Optional[FinanceConfig] = None,
        storage: Optional[StorageInterface] = None,
        clock: Callable[[], date] = date.today
    ):
        self.config = config or get_config()
        self.currency = self.config.currency
        self.clock = clock

        # Initialize storage
        self.storage = storage or create_storage(
            self.config.storage_backend, self.config.database_path,
            busy_timeout=self.config.database_busy_timeout
        )

        # Lock registries; plan locks are always taken before customer locks
        self.plan_locks = KeyedLocks("plan")
        self.customer_locks = KeyedLocks("customer")

        # Initialize core components
        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.ledger = MiscBalanceLedger(
            self.storage, self.customer_manager, self.audit_trail,
            self.customer_locks, self.currency, system_user=self.config.system_user
        )
        self.calculator = AmortizationCalculator(self.currency)
        self.plan_store = PlanStore(self.storage)
        self.plan_manager = InstallmentPlanManager(
            self.storage, self.plan_store, self.calculator, self.customer_manager,
            self.audit_trail, self.plan_locks, clock=clock,
            default_page_size=self.config.default_page_size,
            max_page_size=self.config.max_page_size
        )
        self.payment_engine = PaymentApplicationEngine(
            self.storage, self.plan_store, self.ledger, self.audit_trail,
            self.plan_locks, self.customer_locks, self.currency,
            clock=clock, system_user=self.config.system_user
        )

    def today(self) -> date:
        return self.clock()

    def close(self) -> None:
        self.storage.close()


# Global system instance, built on first use
_finance_system: Optional[FinanceSystem] = None


def get_finance_system() -> FinanceSystem:
    """Dependency to get the finance system"""
    global _finance_system
    if _finance_system is None:
        _finance_system = FinanceSystem()
    return _finance_system
