"""
Customer Registry Module

The slice of the customer profile the installment engine reads: identity,
contact details shown on plans and receipts, and the cached misc balance.
`misc_balance` is a read model of the ledger and is only written by it.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import NotFoundError, ValidationError
from .logging_config import get_logger, log_action


@dataclass
class Customer(StorageRecord):
    """Customer profile"""
    name: str
    phone: Optional[str] = None
    cnic: Optional[str] = None
    address: Optional[str] = None
    misc_balance: Decimal = Decimal('0')


class CustomerManager:
    """Creates and reads customers; exposes the ledger-owned balance cache"""

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "customers"
        self.logger = get_logger("installments.customers")

    def create_customer(
        self,
        name: str,
        phone: Optional[str] = None,
        cnic: Optional[str] = None,
        address: Optional[str] = None
    ) -> Customer:
        """Register a customer with a zero misc balance"""
        if not name or not name.strip():
            raise ValidationError("Customer name is required")

        now = datetime.now(timezone.utc)
        customer = Customer(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name.strip(),
            phone=phone,
            cnic=cnic,
            address=address
        )

        with self.storage.atomic():
            self._save_customer(customer)
            self.audit_trail.log_event(
                event_type=AuditEventType.CUSTOMER_CREATED,
                entity_type="customer",
                entity_id=customer.id,
                metadata={"name": customer.name}
            )

        log_action(
            self.logger, "info", "Customer created",
            action="create_customer", resource=f"customer:{customer.id}"
        )
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        data = self.storage.load(self.table_name, customer_id)
        if data:
            return self._customer_from_dict(data)
        return None

    def require_customer(self, customer_id: str) -> Customer:
        customer = self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found", {"customerId": customer_id})
        return customer

    def list_customers(self) -> List[Customer]:
        return [self._customer_from_dict(data) for data in self.storage.load_all(self.table_name)]

    def set_cached_balance(self, customer_id: str, balance: Decimal) -> None:
        """Write the ledger-derived balance into the customer read model"""
        customer = self.require_customer(customer_id)
        customer.misc_balance = balance
        customer.updated_at = datetime.now(timezone.utc)
        self._save_customer(customer)

    def _save_customer(self, customer: Customer) -> None:
        self.storage.save(self.table_name, customer.id, self._customer_to_dict(customer))

    def _customer_to_dict(self, customer: Customer) -> Dict:
        result = customer.base_dict()
        result.update({
            'name': customer.name,
            'phone': customer.phone,
            'cnic': customer.cnic,
            'address': customer.address,
            'misc_balance': str(customer.misc_balance),
        })
        return result

    def _customer_from_dict(self, data: Dict) -> Customer:
        return Customer(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            phone=data.get('phone'),
            cnic=data.get('cnic'),
            address=data.get('address'),
            misc_balance=Decimal(data.get('misc_balance', '0'))
        )
