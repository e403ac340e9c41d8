"""
Miscellaneous register (customer misc balance ledger) endpoints
"""

from fastapi import APIRouter, Depends, Response, status

from .dependencies import FinanceSystem, get_finance_system
from .schemas import CreateMiscTransactionRequest, money, summary_row_to_dto, transaction_to_dto
from ..ledger import INSTALLMENT_REFERENCE, MANUAL_REFERENCE, TransactionType
from ..errors import ValidationError


router = APIRouter()


@router.get("/summary")
async def get_summary(system: FinanceSystem = Depends(get_finance_system)):
    """Per-customer rollups for non-zero balances"""
    return [summary_row_to_dto(row) for row in system.ledger.summary()]


@router.get("/customer/{customer_id}")
async def get_customer_transactions(
    customer_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Transaction history, newest first"""
    customer = system.customer_manager.require_customer(customer_id)
    return [transaction_to_dto(t, customer.name) for t in system.ledger.history(customer_id)]


@router.get("/customer/{customer_id}/balance")
async def get_customer_balance(
    customer_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Current misc balance as a bare number"""
    return money(system.ledger.balance_of(customer_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: CreateMiscTransactionRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Post a manual Credit, Debit or Adjustment"""
    try:
        transaction_type = TransactionType(request.transaction_type)
    except ValueError:
        raise ValidationError(
            f"Unknown transaction type: {request.transaction_type}",
            {"allowed": [t.value for t in TransactionType]}
        )

    reference_type = request.reference_type or MANUAL_REFERENCE
    if reference_type == INSTALLMENT_REFERENCE:
        raise ValidationError("Installment-linked transactions are posted by payments only")

    customer = system.customer_manager.require_customer(request.customer_id)
    kwargs = dict(
        reference_type=reference_type,
        reference_id=request.reference_id,
        created_by=system.config.manual_entry_user
    )

    if transaction_type == TransactionType.CREDIT:
        transaction = system.ledger.credit(customer.id, request.amount, request.description, **kwargs)
    elif transaction_type == TransactionType.DEBIT:
        transaction = system.ledger.debit(customer.id, request.amount, request.description, **kwargs)
    else:
        transaction = system.ledger.adjust(customer.id, request.amount, request.description, **kwargs)

    return transaction_to_dto(transaction, customer.name)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Administrative removal of a manual transaction"""
    system.ledger.delete_transaction(transaction_id, deleted_by=system.config.manual_entry_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
