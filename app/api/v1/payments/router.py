import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

from app.api.v1.payments.schemas import (
    AccountPaymentsResponse,
    PaymentFilters,
    PaymentHistoryResponse,
    PaymentListResponse,
    PaymentRecord,
    PostPaymentRequest,
    PostPaymentResponse,
)
from app.api.v1.payments.service import PaymentService
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AppException
from app.models.enums import PaymentMethod, PaymentStatus

router = APIRouter()


def _page_limit(limit: Optional[int]) -> int:
    """Page size: DEFAULT_PAGE_SIZE when omitted, never above MAX_PAGE_SIZE."""
    return min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)


def _filters(
    status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    payment_method: Optional[PaymentMethod] = Query(None, description="Filter by payment method"),
    start_date: Optional[date] = Query(None, description="Payments on or after this date"),
    end_date: Optional[date] = Query(None, description="Payments on or before this date"),
) -> PaymentFilters:
    return PaymentFilters(status=status, payment_method=payment_method, start_date=start_date, end_date=end_date)


# --- Post payment ---
@router.post(
    "/",
    response_model=PostPaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Process a new payment",
    description="Record a payment against a customer's loan account and lower the outstanding balance in one transaction.",
    tags=["payments"],
)
async def post_payment(
    data: PostPaymentRequest,
    db: AsyncSession = Depends(get_db),
):
    """Validates the amount against the balance, posts the payment, returns it with the updated customer."""
    logger.info(
        "POST /payments/ request: account_number=%s payment_amount=%s payment_method=%s",
        data.account_number,
        data.payment_amount,
        data.payment_method.value,
    )
    service = PaymentService(db)
    return await service.process_payment(data)


# --- All payments (paginated, filtered) ---
@router.get(
    "/",
    response_model=PaymentListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get all payments",
    description="Paginated list of all payments, newest first. Filter by status, payment_method, start_date, end_date.",
    tags=["payments"],
)
async def list_payments(
    filters: PaymentFilters = Depends(_filters),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Items per page (capped at MAX_PAGE_SIZE)"),
    db: AsyncSession = Depends(get_db),
):
    service = PaymentService(db)
    return await service.list_payments(filters=filters, page=page, limit=_page_limit(limit))


# --- Export (must be declared before /{account_number}) ---
@router.get(
    "/export",
    status_code=status.HTTP_200_OK,
    summary="Export payments to Excel",
    description="Download payments as an Excel (.xlsx) file. Same filters as the list endpoint.",
    tags=["payments"],
)
async def export_payments_excel(
    filters: PaymentFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
):
    """Export payments to Excel (.xlsx)."""
    service = PaymentService(db)
    content = await service.export_payments_to_excel(filters=filters)
    filename = "payments_export.xlsx"
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- Detailed history with statistics ---
@router.get(
    "/history/{account_number}",
    response_model=PaymentHistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Get detailed payment history with statistics",
    description="Customer info, payment statistics and up to 100 latest transactions.",
    tags=["payments"],
)
async def payment_history(
    account_number: str = Path(..., min_length=3, max_length=50, description="Customer account number"),
    db: AsyncSession = Depends(get_db),
):
    service = PaymentService(db)
    return await service.get_payment_history(account_number.strip())


# --- Lookup by reference ---
@router.get(
    "/reference/{payment_reference_id}",
    response_model=PaymentRecord,
    status_code=status.HTTP_200_OK,
    summary="Get payment by reference",
    description="Fetch a single payment by its generated reference (e.g. PAY-1718000000000-1a2b3c4d).",
    tags=["payments"],
)
async def get_payment_by_reference(
    payment_reference_id: str,
    db: AsyncSession = Depends(get_db),
):
    service = PaymentService(db)
    payment = await service.get_payment_by_reference(payment_reference_id)
    if not payment:
        AppException().raise_404("Payment not found")
    return payment


# --- Payments of one account (paginated) ---
@router.get(
    "/{account_number}",
    response_model=AccountPaymentsResponse,
    status_code=status.HTTP_200_OK,
    summary="Get payment history by account number",
    description="Paginated SUCCESS and FAILED payments for one account, newest first.",
    tags=["payments"],
)
async def account_payments(
    account_number: str = Path(..., min_length=3, max_length=50, description="Customer account number"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Items per page (capped at MAX_PAGE_SIZE)"),
    db: AsyncSession = Depends(get_db),
):
    service = PaymentService(db)
    return await service.list_account_payments(account_number.strip(), page=page, limit=_page_limit(limit))
