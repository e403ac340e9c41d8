"""
Customer endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import FinanceSystem, get_finance_system
from .schemas import CreateCustomerRequest, customer_to_dto


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CreateCustomerRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Register a customer"""
    customer = system.customer_manager.create_customer(
        name=request.name,
        phone=request.phone,
        cnic=request.cnic,
        address=request.address
    )
    return customer_to_dto(customer)


@router.get("")
async def list_customers(system: FinanceSystem = Depends(get_finance_system)):
    """List customers"""
    return [customer_to_dto(c) for c in system.customer_manager.list_customers()]


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Get customer details"""
    return customer_to_dto(system.customer_manager.require_customer(customer_id))
