from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.customers.schemas import (
    CreateCustomerRequest,
    CustomerDetailResponse,
    CustomerListResponse,
    CustomerResponse,
    CustomerScheduleResponse,
    UpdateCustomerRequest,
)
from app.api.v1.customers.service import CustomerService
from app.core.config import settings
from app.core.database import get_db

router = APIRouter()


@router.get(
    "/",
    response_model=CustomerListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get all active customers",
    description="Active customers, newest first.",
    tags=["customers"],
)
async def get_all_customers(
    limit: int = Query(50, ge=1, description="Maximum number of records to return (at most 100)"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: AsyncSession = Depends(get_db),
):
    limit = min(limit, settings.MAX_PAGE_SIZE)
    customer_service = CustomerService(db)
    customers = await customer_service.list_active_customers(limit=limit, offset=offset)
    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in customers],
        limit=limit,
        offset=offset,
        count=len(customers),
    )


@router.post(
    "/",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create customer",
    description="Create a loan account. Optionally generate its monthly installment schedule.",
    tags=["customers"],
)
async def create_customer(
    data: CreateCustomerRequest,
    db: AsyncSession = Depends(get_db),
):
    customer_service = CustomerService(db)
    return await customer_service.create_customer(data)


@router.get(
    "/{account_number}/schedule",
    response_model=CustomerScheduleResponse,
    status_code=status.HTTP_200_OK,
    summary="Get payment schedule",
    description="Installments of one customer ordered by due date.",
    tags=["customers"],
)
async def get_customer_schedule(
    account_number: str = Path(..., min_length=3, max_length=50, description="Customer account number"),
    db: AsyncSession = Depends(get_db),
):
    customer_service = CustomerService(db)
    return await customer_service.get_schedule(account_number.strip())


@router.get(
    "/{account_number}",
    response_model=CustomerDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Get customer by account number",
    description="Customer details with payment info (successful payments, total paid, last payment date).",
    tags=["customers"],
)
async def get_customer(
    account_number: str = Path(..., min_length=3, max_length=50, description="Customer account number"),
    db: AsyncSession = Depends(get_db),
):
    customer_service = CustomerService(db)
    return await customer_service.get_customer_detail(account_number.strip())


@router.patch(
    "/{account_number}",
    response_model=CustomerResponse,
    status_code=status.HTTP_200_OK,
    summary="Update customer",
    description="Update contact details, loan terms or status. The outstanding balance changes only through payments.",
    tags=["customers"],
)
async def update_customer(
    data: UpdateCustomerRequest,
    account_number: str = Path(..., min_length=3, max_length=50, description="Customer account number"),
    db: AsyncSession = Depends(get_db),
):
    customer_service = CustomerService(db)
    return await customer_service.update_customer(account_number.strip(), data)
