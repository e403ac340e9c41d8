"""
Miscellaneous Balance Ledger

Append-only per-customer transaction log. The balance is always derived from
the log: Credit adds, Debit subtracts, Adjustment moves in the direction the
caller chose. Each transaction carries the running balance after it, and the
customer's `misc_balance` field is a cache written in the same unit of work.

Writes for one customer are serialized by a per-customer lock, and the
debit gate re-reads the log inside the storage unit of work, so a balance can
never be spent twice.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .currency import Currency, ZERO, money_to_string, to_decimal
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .customers import CustomerManager
from .locks import KeyedLocks
from .errors import InsufficientBalanceError, NotFoundError, ValidationError
from .logging_config import get_logger, log_action


INSTALLMENT_REFERENCE = "Installment"
MANUAL_REFERENCE = "ManualAdjustment"


class TransactionType(Enum):
    """Ledger transaction types"""
    CREDIT = "Credit"
    DEBIT = "Debit"
    ADJUSTMENT = "Adjustment"


@dataclass
class MiscTransaction(StorageRecord):
    """Single immutable ledger row"""
    customer_id: str
    transaction_type: TransactionType
    amount: Decimal           # Always positive
    direction: int            # +1 or -1
    balance: Decimal          # Running balance after this row
    description: str
    reference_type: str
    sequence: int             # Per-customer append order
    reference_id: Optional[str] = None
    created_by: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.direction


def installment_reference(plan_id: str, installment_no: int) -> str:
    """Reference id used for payment-linked ledger rows"""
    return f"{plan_id}/{installment_no}"


class MiscBalanceLedger:
    """
    Per-customer misc balance ledger
    """

    def __init__(
        self,
        storage: StorageInterface,
        customer_manager: CustomerManager,
        audit_trail: AuditTrail,
        customer_locks: KeyedLocks,
        currency: Currency,
        system_user: str = "System"
    ):
        self.storage = storage
        self.customer_manager = customer_manager
        self.audit_trail = audit_trail
        self.customer_locks = customer_locks
        self.currency = currency
        self.system_user = system_user
        self.table_name = "misc_transactions"
        self.logger = get_logger("installments.ledger")

    # ── Writes ────────────────────────────────────────────

    def credit(
        self,
        customer_id: str,
        amount: Any,
        description: str,
        reference_type: str = MANUAL_REFERENCE,
        reference_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> MiscTransaction:
        """Append a Credit; balance increases by amount"""
        return self._append(
            customer_id, TransactionType.CREDIT, amount, 1,
            description, reference_type, reference_id, created_by
        )

    def debit(
        self,
        customer_id: str,
        amount: Any,
        description: str,
        reference_type: str = MANUAL_REFERENCE,
        reference_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> MiscTransaction:
        """
        Append a Debit; balance decreases by amount

        Raises:
            InsufficientBalanceError: If amount exceeds the balance at the
                moment of the write
        """
        return self._append(
            customer_id, TransactionType.DEBIT, amount, -1,
            description, reference_type, reference_id, created_by
        )

    def adjust(
        self,
        customer_id: str,
        signed_amount: Any,
        description: str,
        reference_type: str = MANUAL_REFERENCE,
        reference_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> MiscTransaction:
        """Append an Adjustment in the direction of signed_amount's sign"""
        signed_amount = self._parse_amount(signed_amount, allow_negative=True)
        direction = 1 if signed_amount > ZERO else -1
        return self._append(
            customer_id, TransactionType.ADJUSTMENT, abs(signed_amount), direction,
            description, reference_type, reference_id, created_by
        )

    def _append(
        self,
        customer_id: str,
        transaction_type: TransactionType,
        amount: Any,
        direction: int,
        description: str,
        reference_type: str,
        reference_id: Optional[str],
        created_by: Optional[str]
    ) -> MiscTransaction:
        amount = self._parse_amount(amount)
        if not description or not description.strip():
            raise ValidationError("Transaction description is required")

        with self.customer_locks.hold(customer_id):
            with self.storage.atomic():
                self.customer_manager.require_customer(customer_id)

                transactions = self._load_customer_transactions(customer_id)
                current = self._sum(transactions)
                new_balance = current + amount * direction
                if new_balance < ZERO:
                    raise InsufficientBalanceError(
                        f"Insufficient misc balance: available {money_to_string(current, self.currency)}, "
                        f"requested {money_to_string(amount, self.currency)}",
                        {"customerId": customer_id, "balance": current, "requested": amount}
                    )

                now = datetime.now(timezone.utc)
                transaction = MiscTransaction(
                    id=str(uuid.uuid4()),
                    created_at=now,
                    updated_at=now,
                    customer_id=customer_id,
                    transaction_type=transaction_type,
                    amount=amount,
                    direction=direction,
                    balance=new_balance,
                    description=description.strip(),
                    reference_type=reference_type,
                    reference_id=reference_id,
                    sequence=max((t.sequence for t in transactions), default=0) + 1,
                    created_by=created_by or self.system_user
                )
                self._save_transaction(transaction)
                self.customer_manager.set_cached_balance(customer_id, new_balance)

                self.audit_trail.log_event(
                    event_type=self._audit_type(transaction_type),
                    entity_type="ledger",
                    entity_id=customer_id,
                    metadata={
                        "transaction_id": transaction.id,
                        "transaction_type": transaction_type.value,
                        "amount": transaction.signed_amount,
                        "balance": new_balance,
                        "reference_type": reference_type,
                        "reference_id": reference_id
                    },
                    user_id=transaction.created_by
                )

        log_action(
            self.logger, "info", f"Misc ledger {transaction_type.value.lower()} appended",
            action=f"ledger_{transaction_type.value.lower()}", resource=f"customer:{customer_id}",
            user_id=transaction.created_by,
            extra={
                "transaction_id": transaction.id,
                "amount": str(transaction.signed_amount),
                "balance": str(new_balance),
                "reference_type": reference_type,
                "reference_id": reference_id
            }
        )
        return transaction

    def delete_transaction(self, transaction_id: str, deleted_by: Optional[str] = None) -> MiscTransaction:
        """
        Administrative removal of a manual ledger row

        Running balances of every later row and the customer cache are
        re-derived. Payment-linked rows cannot be deleted (post an offsetting
        transaction instead), and a deletion that would drive any running
        balance below zero is refused.
        """
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found", {"transactionId": transaction_id})
        if transaction.reference_type == INSTALLMENT_REFERENCE:
            raise ValidationError(
                "Installment-linked transactions cannot be deleted; post an offsetting transaction",
                {"transactionId": transaction_id, "referenceId": transaction.reference_id}
            )

        customer_id = transaction.customer_id
        with self.customer_locks.hold(customer_id):
            with self.storage.atomic():
                remaining = [t for t in self._load_customer_transactions(customer_id) if t.id != transaction_id]

                running = ZERO
                for row in remaining:
                    running += row.signed_amount
                    if running < ZERO:
                        raise InsufficientBalanceError(
                            "Deleting this transaction would leave the misc balance negative",
                            {"customerId": customer_id, "transactionId": transaction_id}
                        )
                    if row.balance != running:
                        row.balance = running
                        row.updated_at = datetime.now(timezone.utc)
                        self._save_transaction(row)

                self.storage.delete(self.table_name, transaction_id)
                self.customer_manager.set_cached_balance(customer_id, running)

                self.audit_trail.log_event(
                    event_type=AuditEventType.LEDGER_TRANSACTION_DELETED,
                    entity_type="ledger",
                    entity_id=customer_id,
                    metadata={
                        "transaction_id": transaction_id,
                        "transaction_type": transaction.transaction_type.value,
                        "amount": transaction.signed_amount,
                        "balance": running
                    },
                    user_id=deleted_by
                )

        log_action(
            self.logger, "warning", "Misc ledger transaction deleted",
            action="ledger_delete", resource=f"customer:{customer_id}", user_id=deleted_by,
            extra={"transaction_id": transaction_id, "balance": str(running)}
        )
        return transaction

    # ── Reads ─────────────────────────────────────────────

    def balance_of(self, customer_id: str) -> Decimal:
        """
        Current balance recomputed from the log

        A disagreement with the cached customer balance is logged as an
        integrity error; the recomputed figure is returned.
        """
        customer = self.customer_manager.require_customer(customer_id)
        balance = self._sum(self._load_customer_transactions(customer_id))
        if customer.misc_balance != balance:
            log_action(
                self.logger, "error", "Cached misc balance disagrees with ledger",
                action="ledger_cache_mismatch", resource=f"customer:{customer_id}",
                extra={"cached": str(customer.misc_balance), "ledger": str(balance)}
            )
        return balance

    def history(self, customer_id: str) -> List[MiscTransaction]:
        """Transactions for a customer, newest first"""
        self.customer_manager.require_customer(customer_id)
        return list(reversed(self._load_customer_transactions(customer_id)))

    def get_transaction(self, transaction_id: str) -> Optional[MiscTransaction]:
        data = self.storage.load(self.table_name, transaction_id)
        if data:
            return self._transaction_from_dict(data)
        return None

    def summary(self) -> List[Dict[str, Any]]:
        """
        Per-customer rollups for customers with a non-zero balance,
        largest balance first
        """
        grouped: Dict[str, List[MiscTransaction]] = {}
        for data in self.storage.load_all(self.table_name):
            transaction = self._transaction_from_dict(data)
            grouped.setdefault(transaction.customer_id, []).append(transaction)

        rows = []
        for customer_id, transactions in grouped.items():
            balance = self._sum(transactions)
            if balance == ZERO:
                continue
            customer = self.customer_manager.get_customer(customer_id)
            rows.append({
                "customer_id": customer_id,
                "customer_name": customer.name if customer else "",
                "total_credits": sum((t.amount for t in transactions
                                      if t.transaction_type == TransactionType.CREDIT), ZERO),
                "total_debits": sum((t.amount for t in transactions
                                     if t.transaction_type == TransactionType.DEBIT), ZERO),
                "total_adjustments": sum((t.signed_amount for t in transactions
                                          if t.transaction_type == TransactionType.ADJUSTMENT), ZERO),
                "balance": balance,
                "transaction_count": len(transactions),
                "last_transaction": max(t.created_at for t in transactions)
            })

        rows.sort(key=lambda row: row["balance"], reverse=True)
        return rows

    def verify_customer(self, customer_id: str) -> Dict[str, Any]:
        """Replay the log and report snapshot and cache disagreements"""
        customer = self.customer_manager.require_customer(customer_id)
        result = {
            'valid': True,
            'balance': ZERO,
            'cached_balance': customer.misc_balance,
            'snapshot_errors': []
        }

        running = ZERO
        for transaction in self._load_customer_transactions(customer_id):
            running += transaction.signed_amount
            if transaction.balance != running:
                result['valid'] = False
                result['snapshot_errors'].append({
                    'transaction_id': transaction.id,
                    'sequence': transaction.sequence,
                    'expected_balance': running,
                    'recorded_balance': transaction.balance
                })

        result['balance'] = running
        if customer.misc_balance != running:
            result['valid'] = False
        return result

    # ── Helpers ───────────────────────────────────────────

    def _parse_amount(self, amount: Any, allow_negative: bool = False) -> Decimal:
        try:
            value = to_decimal(amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if not value.is_finite():
            raise ValidationError("Amount must be a finite number")
        if value == ZERO or (value < ZERO and not allow_negative):
            raise ValidationError("Amount must be greater than zero", {"amount": value})
        if value != value.quantize(self.currency.minor_unit):
            raise ValidationError(
                f"Amount has more decimal places than {self.currency.code} allows",
                {"amount": value}
            )
        return value.quantize(self.currency.minor_unit)

    @staticmethod
    def _sum(transactions: List[MiscTransaction]) -> Decimal:
        return sum((t.signed_amount for t in transactions), ZERO)

    @staticmethod
    def _audit_type(transaction_type: TransactionType) -> AuditEventType:
        return {
            TransactionType.CREDIT: AuditEventType.LEDGER_CREDITED,
            TransactionType.DEBIT: AuditEventType.LEDGER_DEBITED,
            TransactionType.ADJUSTMENT: AuditEventType.LEDGER_ADJUSTED,
        }[transaction_type]

    def _load_customer_transactions(self, customer_id: str) -> List[MiscTransaction]:
        """Customer's rows in append order"""
        rows = self.storage.find(self.table_name, {"customer_id": customer_id})
        transactions = [self._transaction_from_dict(data) for data in rows]
        transactions.sort(key=lambda t: t.sequence)
        return transactions

    def _save_transaction(self, transaction: MiscTransaction) -> None:
        self.storage.save(self.table_name, transaction.id, self._transaction_to_dict(transaction))

    def _transaction_to_dict(self, transaction: MiscTransaction) -> Dict:
        result = transaction.base_dict()
        result.update({
            'customer_id': transaction.customer_id,
            'transaction_type': transaction.transaction_type.value,
            'amount': str(transaction.amount),
            'direction': transaction.direction,
            'balance': str(transaction.balance),
            'description': transaction.description,
            'reference_type': transaction.reference_type,
            'reference_id': transaction.reference_id,
            'sequence': transaction.sequence,
            'created_by': transaction.created_by,
        })
        return result

    def _transaction_from_dict(self, data: Dict) -> MiscTransaction:
        return MiscTransaction(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            customer_id=data['customer_id'],
            transaction_type=TransactionType(data['transaction_type']),
            amount=Decimal(data['amount']),
            direction=data['direction'],
            balance=Decimal(data['balance']),
            description=data['description'],
            reference_type=data['reference_type'],
            reference_id=data.get('reference_id'),
            sequence=data['sequence'],
            created_by=data.get('created_by')
        )
