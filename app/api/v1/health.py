from datetime import datetime

from fastapi import APIRouter

router = APIRouter()


@router.get("/", summary="Health Check")
async def health_check():
    return {
        "status": "ok",
        "message": "Payment Collection API is running",
        "timestamp": datetime.utcnow().isoformat(),
    }
