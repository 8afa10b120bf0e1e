from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dashboard.schemas import DashboardResponse
from app.api.v1.dashboard.service import DashboardService
from app.core.database import get_db

router = APIRouter()


@router.get(
    "/",
    response_model=DashboardResponse,
    status_code=status.HTTP_200_OK,
    summary="Get dashboard data",
    description="Active customers, amount collected this month, total outstanding, successful transactions and the 20 most recent payments.",
    tags=["dashboard"],
)
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    dashboard_service = DashboardService(db)
    return await dashboard_service.get_dashboard_data()
