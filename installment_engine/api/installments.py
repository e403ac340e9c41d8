"""
Installment plan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from .dependencies import FinanceSystem, get_finance_system
from .schemas import (
    CreatePlanRequest, PayInstallmentRequest, PlanTermsRequest,
    guarantor_to_dto, payment_result_to_dto, payment_to_dto, plan_to_dto, quote_to_dto
)
from .uploads import save_upload


router = APIRouter()


def _plan_dto(system: FinanceSystem, plan):
    return plan_to_dto(
        plan,
        system.customer_manager.get_customer(plan.customer_id),
        system.plan_manager.guarantors_for(plan.id),
        system.today(),
        system.currency
    )


@router.post("/preview")
async def preview_plan(
    request: PlanTermsRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Quote a schedule without saving anything"""
    quote = system.plan_manager.preview(request.to_terms())
    return quote_to_dto(quote)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_plan(
    request: CreatePlanRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Create a plan with its full schedule"""
    plan = system.plan_manager.create_plan(
        customer_id=request.customer_id,
        product_id=request.product_id,
        terms=request.to_terms(),
        created_by=system.config.manual_entry_user
    )
    return _plan_dto(system, plan)


@router.get("")
async def list_plans(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    system: FinanceSystem = Depends(get_finance_system)
):
    """List plans, newest first"""
    return [_plan_dto(system, plan) for plan in system.plan_manager.list_plans(customer_id)]


@router.get("/paged")
async def list_plans_paged(
    page: int = Query(1),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    search: Optional[str] = Query(None),
    plan_status: Optional[str] = Query(None, alias="status"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_desc: bool = Query(True, alias="sortDesc"),
    system: FinanceSystem = Depends(get_finance_system)
):
    """One page of plans"""
    result = system.plan_manager.list_plans_paged(
        page=page,
        page_size=page_size,
        search=search,
        status=plan_status,
        sort_by=sort_by,
        sort_desc=sort_desc
    )
    return {
        "items": [_plan_dto(system, plan) for plan in result["items"]],
        "totalCount": result["total_count"],
        "page": result["page"],
        "pageSize": result["page_size"],
        "totalPages": result["total_pages"],
    }


@router.put("/guarantors/{guarantor_id}")
async def update_guarantor(
    guarantor_id: str,
    name: str = Form(...),
    so: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    cnic: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    relationship: Optional[str] = Form(None),
    picture: Optional[UploadFile] = File(None),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Replace a guarantor's details; the stored picture is kept unless a new one is sent"""
    system.plan_manager.require_guarantor(guarantor_id)
    picture_path = await save_upload(picture, "guarantors", system.config)
    guarantor = system.plan_manager.update_guarantor(
        guarantor_id, name=name, so=so, phone=phone, cnic=cnic,
        address=address, relationship=relationship, picture=picture_path
    )
    return guarantor_to_dto(guarantor)


@router.delete("/guarantors/{guarantor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_guarantor(
    guarantor_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Remove a guarantor"""
    system.plan_manager.delete_guarantor(guarantor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{plan_id}")
async def get_plan(
    plan_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Get plan details with schedule and guarantors"""
    plan = system.plan_manager.require_plan(plan_id)
    return _plan_dto(system, plan)


@router.put("/{plan_id}/pay/{installment_no}")
async def pay_installment(
    plan_id: str,
    installment_no: int,
    request: PayInstallmentRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Apply a payment to one installment"""
    result = system.payment_engine.pay(
        plan_id, installment_no, request.to_command(),
        paid_by=system.config.manual_entry_user
    )
    return payment_result_to_dto(result)


@router.get("/{plan_id}/payments")
async def get_plan_payments(
    plan_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Receipt history of a plan"""
    return [payment_to_dto(payment) for payment in system.plan_manager.payments_for(plan_id)]


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_plan(
    plan_id: str,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Cancel a plan; its schedule is kept"""
    system.plan_manager.cancel_plan(plan_id, cancelled_by=system.config.manual_entry_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{plan_id}/guarantors")
async def add_guarantor(
    plan_id: str,
    name: str = Form(...),
    so: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    cnic: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    relationship: Optional[str] = Form(None),
    picture: Optional[UploadFile] = File(None),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Attach a guarantor to a plan (multipart form with an optional picture)"""
    system.plan_manager.require_plan(plan_id)
    picture_path = await save_upload(picture, "guarantors", system.config)
    guarantor = system.plan_manager.add_guarantor(
        plan_id, name=name, so=so, phone=phone, cnic=cnic,
        address=address, relationship=relationship, picture=picture_path
    )
    return guarantor_to_dto(guarantor)
